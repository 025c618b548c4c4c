import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='ProcessedEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('key', models.CharField(db_index=True, help_text='SHA256 composite key of (category, identifier).', max_length=64)),
                ('category', models.CharField(max_length=255)),
                ('identifier', models.CharField(max_length=255)),
                ('details_fingerprint', models.CharField(blank=True, help_text='SHA256 fingerprint of the sorted event details.', max_length=64)),
                ('details', models.JSONField(help_text='Details of the last occurrence folded into the record.', null=True)),
                ('count', models.PositiveIntegerField(help_text='Occurrences folded into the record before it was drained.')),
                ('last_event_time', models.DateTimeField()),
                ('scheduled_send_at', models.DateTimeField(null=True)),
                ('config', models.JSONField(default=dict)),
                ('processed_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, help_text='Timestamp when the record was drained and archived.')),
            ],
            options={
                'verbose_name': 'Processed Event',
                'verbose_name_plural': 'Processed Events',
                'ordering': ['-processed_at'],
            },
        ),
    ]
