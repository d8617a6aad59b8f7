from tortoise import fields
from tortoise.models import Model

class TrackerSettings(Model):
    id = fields.IntField(pk=True)
    user = fields.OneToOneField('models.User', related_name='settings')
    top_total = fields.IntField(default=27)
    bottom_total = fields.IntField(default=23)
    install_date = fields.DateField(null=True)
    schedule_type = fields.CharField(max_length=32, default='every_n_days')
    interval_days = fields.IntField(default=2)
    child_name = fields.CharField(max_length=128, default='Child')
    log_together = fields.BooleanField(default=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "settings"
