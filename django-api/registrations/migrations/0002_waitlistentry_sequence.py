from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("registrations", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="waitlistentry",
            name="sequence",
            field=models.PositiveIntegerField(default=0),
        ),
        migrations.AlterModelOptions(
            name="waitlistentry",
            options={
                "ordering": ["created_at", "sequence"],
                "verbose_name_plural": "waitlist entries",
            },
        ),
    ]
