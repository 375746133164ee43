from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone
import uuid


BLOOD_GROUP_CHOICES = [
    ('A+', 'A+'), ('A-', 'A-'), ('B+', 'B+'), ('B-', 'B-'),
    ('AB+', 'AB+'), ('AB-', 'AB-'), ('O+', 'O+'), ('O-', 'O-'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('donor', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='BloodRequest',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('bloodgroup', models.CharField(choices=BLOOD_GROUP_CHOICES, max_length=10)),
                ('description', models.CharField(blank=True, max_length=500)),
                ('hospital_address', models.CharField(max_length=255)),
                ('hospital_latitude', models.DecimalField(decimal_places=6, max_digits=9)),
                ('hospital_longitude', models.DecimalField(decimal_places=6, max_digits=9)),
                ('units_required', models.PositiveIntegerField()),
                ('contact_phone', models.CharField(max_length=20)),
                ('status', models.CharField(choices=[('looking', 'Looking for donors'), ('partially_fulfilled', 'Partially fulfilled'), ('completed', 'Completed'), ('expired', 'Expired')], db_index=True, default='looking', max_length=20)),
                ('notification_sent', models.BooleanField(default=False)),
                ('donors_found', models.PositiveIntegerField(default=0)),
                ('notifications_sent', models.PositiveIntegerField(default=0)),
                ('notifications_failed', models.PositiveIntegerField(default=0)),
                ('notification_error', models.CharField(blank=True, max_length=255)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ('expires_at', models.DateTimeField(db_index=True, editable=False)),
                ('version', models.PositiveIntegerField(default=0)),
                ('requester', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='blood_requests', to='donor.donor')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['status', 'expires_at'], name='blood_req_status_exp_idx')],
            },
        ),
        migrations.CreateModel(
            name='Donation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('units_donated', models.PositiveIntegerField(default=1)),
                ('donated_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('status', models.CharField(choices=[('scheduled', 'Scheduled'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='scheduled', max_length=20)),
                ('donor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='donations', to='donor.donor')),
                ('request', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='donations', to='blood.bloodrequest')),
            ],
            options={
                'ordering': ['donated_at', 'id'],
                'constraints': [models.UniqueConstraint(fields=('request', 'donor'), name='uniq_donation_per_request_donor')],
            },
        ),
        migrations.CreateModel(
            name='NotifiedDonor',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('position', models.PositiveIntegerField()),
                ('distance_km', models.FloatField()),
                ('delivered', models.BooleanField(default=False)),
                ('failure_reason', models.CharField(blank=True, max_length=255)),
                ('notified_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('donor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to='donor.donor')),
                ('request', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notified_donors', to='blood.bloodrequest')),
            ],
            options={
                'ordering': ['request', 'position'],
                'constraints': [models.UniqueConstraint(fields=('request', 'donor'), name='uniq_notified_donor_per_request')],
            },
        ),
    ]
