# Generated migration for payments app - invoices, lines and tenders

import uuid
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


METHOD_CHOICES = [
    ('efectivo', 'Efectivo'),
    ('tarjeta', 'Tarjeta'),
    ('transferencia', 'Transferencia'),
    ('nequi', 'Nequi'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('clinical', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('secuencia', models.PositiveBigIntegerField(editable=False, unique=True)),
                ('numero_factura', models.CharField(editable=False, max_length=20, unique=True)),
                ('subtotal', models.DecimalField(decimal_places=2, max_digits=12)),
                ('descuento', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('descuento_justificacion', models.TextField(blank=True)),
                ('total', models.DecimalField(decimal_places=2, max_digits=12)),
                ('estado', models.CharField(choices=[('activo', 'Activo'), ('anulado', 'Anulado')], default='activo', max_length=20)),
                ('notas', models.TextField(blank=True)),
                ('anulado_at', models.DateTimeField(blank=True, null=True)),
                ('anulacion_justificacion', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('anulado_por', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='payments_voided', to=settings.AUTH_USER_MODEL)),
                ('appointment', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='payments', to='clinical.appointment')),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payments_created', to=settings.AUTH_USER_MODEL)),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payments', to='clinical.patient')),
            ],
            options={
                'verbose_name': 'Payment',
                'verbose_name_plural': 'Payments',
                'db_table': 'pago',
                'ordering': ['-secuencia'],
                'indexes': [
                    models.Index(fields=['created_at'], name='idx_pago_created'),
                    models.Index(fields=['estado'], name='idx_pago_estado'),
                    models.Index(fields=['patient'], name='idx_pago_paciente'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('descuento__gte', 0)), name='pago_descuento_non_negative'),
                    models.CheckConstraint(condition=models.Q(('total', models.F('subtotal') - models.F('descuento'))), name='pago_total_equals_subtotal_minus_descuento'),
                    models.CheckConstraint(condition=models.Q(('total__gte', 0)), name='pago_total_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PaymentItem',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('position', models.PositiveSmallIntegerField()),
                ('nombre_servicio', models.CharField(max_length=255)),
                ('precio_unitario', models.DecimalField(decimal_places=2, max_digits=12)),
                ('cantidad', models.PositiveIntegerField()),
                ('subtotal', models.DecimalField(decimal_places=2, max_digits=12)),
                ('payment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='payments.payment')),
                ('service', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payment_items', to='clinical.service')),
            ],
            options={
                'verbose_name': 'Payment Item',
                'verbose_name_plural': 'Payment Items',
                'db_table': 'pago_item',
                'ordering': ['position'],
                'constraints': [
                    models.UniqueConstraint(fields=('payment', 'position'), name='uniq_pago_item_position'),
                    models.CheckConstraint(condition=models.Q(('cantidad__gte', 1)), name='pago_item_cantidad_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PaymentMethod',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('position', models.PositiveSmallIntegerField()),
                ('metodo', models.CharField(choices=METHOD_CHOICES, max_length=20)),
                ('monto', models.DecimalField(decimal_places=2, max_digits=12)),
                ('comprobante_path', models.CharField(blank=True, max_length=500)),
                ('payment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='methods', to='payments.payment')),
            ],
            options={
                'verbose_name': 'Payment Method',
                'verbose_name_plural': 'Payment Methods',
                'db_table': 'pago_metodo',
                'ordering': ['position'],
                'constraints': [
                    models.UniqueConstraint(fields=('payment', 'position'), name='uniq_pago_metodo_position'),
                    models.CheckConstraint(condition=models.Q(('monto__gt', 0)), name='pago_metodo_monto_positive'),
                ],
            },
        ),
    ]
