import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('dealers', '0001_initial'),
        ('academy', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='PreRegistration',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('first_name', models.CharField(max_length=100, verbose_name='first name')),
                ('last_name', models.CharField(max_length=100, verbose_name='last name')),
                ('birth_date', models.DateField(blank=True, null=True, verbose_name='birth date')),
                ('gender', models.CharField(blank=True, choices=[('MALE', 'Male'), ('FEMALE', 'Female')], max_length=10)),
                ('parent_name', models.CharField(max_length=200)),
                ('parent_phone', models.CharField(max_length=30)),
                ('parent_email', models.EmailField(blank=True, max_length=254)),
                ('branch_interest', models.CharField(blank=True, max_length=100)),
                ('source', models.CharField(blank=True, choices=[('website', 'Website'), ('phone', 'Phone'), ('walk-in', 'Walk-in')], max_length=20)),
                ('notes', models.TextField(blank=True)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('CONTACTED', 'Contacted'), ('CONVERTED', 'Converted'), ('CANCELLED', 'Cancelled')], default='PENDING', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('dealer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='pre_registrations', to='dealers.dealer')),
                ('student', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='pre_registrations', to='academy.student')),
            ],
            options={
                'verbose_name': 'pre-registration',
                'verbose_name_plural': 'pre-registrations',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['dealer', 'status'], name='prereg_dealer_status_idx')],
            },
        ),
    ]
