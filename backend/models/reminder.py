from tortoise import fields
from tortoise.models import Model

class Reminder(Model):
    id = fields.IntField(pk=True)
    user = fields.ForeignKeyField('models.User', related_name='reminders')
    type = fields.CharField(max_length=32)  # turn_due
    due_date = fields.DateField(null=True)
    scheduled_for = fields.DatetimeField()
    sent = fields.BooleanField(default=False)
    sent_at = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "reminders"
