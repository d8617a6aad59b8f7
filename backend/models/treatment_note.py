from tortoise import fields
from tortoise.models import Model

class TreatmentNote(Model):
    id = fields.IntField(pk=True)
    user = fields.ForeignKeyField('models.User', related_name='treatment_notes')
    date = fields.DateField()
    note = fields.TextField()
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "treatment_notes"
