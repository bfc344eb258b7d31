# Generated migration for cash app - daily cash closings

import uuid
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


def money_field():
    return models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='CashClosing',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('modulo', models.CharField(choices=[('clinica', 'Clínica'), ('medias', 'Medias')], default='clinica', max_length=20)),
                ('secuencia', models.PositiveBigIntegerField(editable=False)),
                ('cierre_numero', models.CharField(editable=False, max_length=20, unique=True)),
                ('fecha_cierre', models.DateField()),
                ('total_efectivo', money_field()),
                ('total_tarjeta', money_field()),
                ('total_transferencia', money_field()),
                ('total_nequi', money_field()),
                ('total_descuentos', money_field()),
                ('total_anulaciones', money_field()),
                ('grand_total', money_field()),
                ('transaction_count', models.PositiveIntegerField(default=0)),
                ('conteo_fisico_efectivo', models.DecimalField(decimal_places=2, max_digits=12)),
                ('diferencia', models.DecimalField(decimal_places=2, max_digits=12)),
                ('diferencia_justificacion', models.TextField(blank=True)),
                ('cierre_photo_path', models.CharField(blank=True, max_length=500)),
                ('notas', models.TextField(blank=True)),
                ('estado', models.CharField(choices=[('cerrado', 'Cerrado'), ('reabierto', 'Reabierto')], default='cerrado', max_length=20)),
                ('closed_at', models.DateTimeField(auto_now_add=True)),
                ('reopened_at', models.DateTimeField(blank=True, null=True)),
                ('reopen_justificacion', models.TextField(blank=True)),
                ('closed_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='cash_closings_closed', to=settings.AUTH_USER_MODEL)),
                ('reopened_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='cash_closings_reopened', to=settings.AUTH_USER_MODEL)),
                ('supersedes', models.OneToOneField(blank=True, help_text='Reopened closing of the same date that this closing replaces', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='superseded_by', to='cash.cashclosing')),
            ],
            options={
                'verbose_name': 'Cash Closing',
                'verbose_name_plural': 'Cash Closings',
                'db_table': 'cierre_caja',
                'ordering': ['-fecha_cierre', '-secuencia'],
                'indexes': [models.Index(fields=['modulo', 'fecha_cierre'], name='idx_cierre_modulo_fecha')],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('estado', 'cerrado')), fields=('modulo', 'fecha_cierre'), name='uniq_cierre_cerrado_por_fecha'),
                    models.UniqueConstraint(fields=('modulo', 'secuencia'), name='uniq_cierre_modulo_secuencia'),
                    models.CheckConstraint(condition=models.Q(('conteo_fisico_efectivo__gte', 0)), name='cierre_conteo_non_negative'),
                ],
            },
        ),
    ]
