from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


BLOOD_GROUP_CHOICES = [
    ('A+', 'A+'), ('A-', 'A-'), ('B+', 'B+'), ('B-', 'B-'),
    ('AB+', 'AB+'), ('AB-', 'AB-'), ('O+', 'O+'), ('O-', 'O-'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Donor',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('bloodgroup', models.CharField(choices=BLOOD_GROUP_CHOICES, max_length=10)),
                ('mobile', models.CharField(max_length=20)),
                ('is_donor', models.BooleanField(default=False)),
                ('notification_token', models.CharField(blank=True, default='', max_length=512)),
                ('token_updated_at', models.DateTimeField(blank=True, null=True)),
                ('last_donated_at', models.DateField(blank=True, null=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['id'],
            },
        ),
    ]
