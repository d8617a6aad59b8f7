from tortoise import fields
from tortoise.models import Model

class Turn(Model):
    id = fields.IntField(pk=True)
    user = fields.ForeignKeyField('models.User', related_name='turns')
    date = fields.DateField()
    arch = fields.CharField(max_length=8)  # top / bottom
    note = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "turns"
        unique_together = (("user", "date", "arch"),)
