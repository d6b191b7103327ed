from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('permisos', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='permitapplication',
            name='expiration_reminder_sent_at',
            field=models.DateTimeField(blank=True, null=True),
        ),
    ]
