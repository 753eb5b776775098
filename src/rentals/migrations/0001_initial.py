import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Materiel',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=150)),
                ('type', models.CharField(choices=[('GRUE_MOBILE', 'Mobile crane'), ('GRUE_TOUR', 'Tower crane'), ('TELESCOPIQUE', 'Telescopic handler'), ('NACELLE_CISEAUX', 'Scissor lift'), ('NACELLE_ARTICULEE', 'Articulated lift'), ('NACELLE_TELESCOPIQUE', 'Telescopic lift'), ('COMPACTEUR', 'Compactor'), ('PELLETEUSE', 'Excavator'), ('AUTRE', 'Other')], db_index=True, default='AUTRE', max_length=30)),
                ('description', models.TextField(blank=True, default='')),
                ('price_per_day', models.DecimalField(decimal_places=2, max_digits=12)),
                ('status', models.CharField(choices=[('AVAILABLE', 'Available'), ('RENTED', 'Rented'), ('MAINTENANCE', 'Maintenance'), ('OUT_OF_ORDER', 'Out of order')], db_index=True, default='AVAILABLE', max_length=20)),
                ('specifications', models.JSONField(blank=True, default=dict)),
                ('images', models.JSONField(blank=True, default=list)),
                ('manual_url', models.CharField(blank=True, default='', max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['name'],
                'indexes': [models.Index(fields=['type', 'status'], name='materiel_type_status_idx')],
                'constraints': [models.CheckConstraint(condition=models.Q(('price_per_day__gte', 0)), name='materiel_price_non_negative')],
            },
        ),
        migrations.CreateModel(
            name='Location',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('start_date', models.DateTimeField()),
                ('end_date', models.DateTimeField()),
                ('total_price', models.DecimalField(decimal_places=2, max_digits=12)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('CONFIRMED', 'Confirmed'), ('ACTIVE', 'Active'), ('COMPLETED', 'Completed'), ('CANCELLED', 'Cancelled')], default='PENDING', max_length=10)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('materiel', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='locations', to='rentals.materiel')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='locations', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['materiel', 'status', 'start_date', 'end_date'], name='location_overlap_idx'),
                    models.Index(fields=['user', 'status'], name='location_user_status_idx'),
                ],
                'constraints': [models.CheckConstraint(condition=models.Q(('end_date__gt', models.F('start_date'))), name='location_end_after_start')],
            },
        ),
    ]
