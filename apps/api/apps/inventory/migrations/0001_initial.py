# Generated migration for inventory app - garments, stock ledger, purchases,
# counter sales and returns

import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


TYPE_CHOICES = [('muslo', 'Muslo'), ('panty', 'Panty'), ('rodilla', 'Rodilla')]
SIZE_CHOICES = [('M', 'M'), ('L', 'L'), ('XL', 'XL'), ('XXL', 'XXL')]
BUCKET_CHOICES = [('normal', 'Stock normal'), ('devoluciones', 'Stock de devoluciones')]
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
            name='Product',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('codigo', models.CharField(max_length=50, unique=True)),
                ('tipo', models.CharField(choices=TYPE_CHOICES, max_length=20)),
                ('talla', models.CharField(choices=SIZE_CHOICES, max_length=5)),
                ('precio', models.DecimalField(decimal_places=2, max_digits=12)),
                ('stock_normal', models.IntegerField(default=0)),
                ('stock_devoluciones', models.IntegerField(default=0)),
                ('umbral_alerta', models.PositiveIntegerField(default=5)),
                ('activo', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Product',
                'verbose_name_plural': 'Products',
                'db_table': 'producto',
                'ordering': ['tipo', 'talla'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('stock_normal__gte', 0)), name='producto_stock_normal_non_negative'),
                    models.CheckConstraint(condition=models.Q(('stock_devoluciones__gte', 0)), name='producto_stock_devoluciones_non_negative'),
                    models.CheckConstraint(condition=models.Q(('precio__gte', 0)), name='producto_precio_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockMovement',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('tipo', models.CharField(
                    choices=[
                        ('compra', 'Compra'),
                        ('venta', 'Venta'),
                        ('devolucion', 'Devolución'),
                        ('ajuste_entrada', 'Ajuste de entrada'),
                        ('ajuste_salida', 'Ajuste de salida'),
                        ('anulacion_compra', 'Anulación de compra'),
                        ('anulacion_venta', 'Anulación de venta'),
                    ],
                    max_length=30
                )),
                ('bucket', models.CharField(choices=BUCKET_CHOICES, default='normal', max_length=20)),
                ('cantidad', models.IntegerField()),
                ('stock_antes', models.IntegerField()),
                ('stock_despues', models.IntegerField()),
                ('referencia_tipo', models.CharField(blank=True, max_length=30)),
                ('referencia_id', models.CharField(blank=True, max_length=64)),
                ('notas', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock_movements', to=settings.AUTH_USER_MODEL)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='inventory.product')),
            ],
            options={
                'verbose_name': 'Stock Movement',
                'verbose_name_plural': 'Stock Movements',
                'db_table': 'movimiento_stock',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['product', 'created_at'], name='idx_mov_producto_fecha'),
                    models.Index(fields=['referencia_tipo', 'referencia_id'], name='idx_mov_referencia'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('cantidad', 0), _negated=True), name='movimiento_cantidad_non_zero'),
                    models.CheckConstraint(condition=models.Q(('stock_despues__gte', 0)), name='movimiento_stock_despues_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Purchase',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('secuencia', models.PositiveBigIntegerField(editable=False, unique=True)),
                ('numero_compra', models.CharField(editable=False, max_length=20, unique=True)),
                ('proveedor', models.CharField(max_length=200)),
                ('fecha_factura', models.DateField()),
                ('numero_factura', models.CharField(blank=True, max_length=100)),
                ('factura_path', models.CharField(max_length=500)),
                ('total', models.DecimalField(decimal_places=2, max_digits=12)),
                ('estado', models.CharField(
                    choices=[
                        ('pendiente_recepcion', 'Pendiente de recepción'),
                        ('recibido', 'Recibido'),
                        ('anulado', 'Anulado'),
                    ],
                    default='pendiente_recepcion',
                    max_length=30
                )),
                ('notas', models.TextField(blank=True)),
                ('recibido_at', models.DateTimeField(blank=True, null=True)),
                ('anulado_at', models.DateTimeField(blank=True, null=True)),
                ('anulacion_justificacion', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('anulado_por', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='purchases_voided', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='purchases_created', to=settings.AUTH_USER_MODEL)),
                ('recibido_por', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='purchases_received', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Purchase',
                'verbose_name_plural': 'Purchases',
                'db_table': 'compra',
                'ordering': ['-secuencia'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('total__gt', 0)), name='compra_total_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PurchaseItem',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('cantidad', models.PositiveIntegerField()),
                ('costo_unitario', models.DecimalField(decimal_places=2, max_digits=12)),
                ('subtotal', models.DecimalField(decimal_places=2, max_digits=12)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='purchase_items', to='inventory.product')),
                ('purchase', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='inventory.purchase')),
            ],
            options={
                'verbose_name': 'Purchase Item',
                'verbose_name_plural': 'Purchase Items',
                'db_table': 'compra_item',
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('cantidad__gte', 1)), name='compra_item_cantidad_positive'),
                    models.CheckConstraint(condition=models.Q(('costo_unitario__gte', 0)), name='compra_item_costo_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='InventorySale',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('secuencia', models.PositiveBigIntegerField(editable=False, unique=True)),
                ('numero_venta', models.CharField(editable=False, max_length=20, unique=True)),
                ('total', models.DecimalField(decimal_places=2, max_digits=12)),
                ('estado', models.CharField(choices=[('activo', 'Activo'), ('anulado', 'Anulado')], default='activo', max_length=20)),
                ('notas', models.TextField(blank=True)),
                ('anulado_at', models.DateTimeField(blank=True, null=True)),
                ('anulacion_justificacion', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('anulado_por', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='inventory_sales_voided', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='inventory_sales_created', to=settings.AUTH_USER_MODEL)),
                ('patient', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='inventory_sales', to='clinical.patient')),
                ('receptor_efectivo', models.ForeignKey(blank=True, help_text='Staff member who physically received the cash', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='inventory_sales_cash_received', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Inventory Sale',
                'verbose_name_plural': 'Inventory Sales',
                'db_table': 'venta_medias',
                'ordering': ['-secuencia'],
                'indexes': [models.Index(fields=['created_at'], name='idx_venta_medias_created')],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('total__gt', 0)), name='venta_medias_total_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='InventorySaleItem',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('position', models.PositiveSmallIntegerField()),
                ('codigo', models.CharField(max_length=50)),
                ('tipo', models.CharField(choices=TYPE_CHOICES, max_length=20)),
                ('talla', models.CharField(choices=SIZE_CHOICES, max_length=5)),
                ('precio_unitario', models.DecimalField(decimal_places=2, max_digits=12)),
                ('cantidad', models.PositiveIntegerField()),
                ('subtotal', models.DecimalField(decimal_places=2, max_digits=12)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='sale_items', to='inventory.product')),
                ('sale', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='inventory.inventorysale')),
            ],
            options={
                'verbose_name': 'Inventory Sale Item',
                'verbose_name_plural': 'Inventory Sale Items',
                'db_table': 'venta_medias_item',
                'ordering': ['position'],
                'constraints': [
                    models.UniqueConstraint(fields=('sale', 'position'), name='uniq_venta_medias_item_position'),
                    models.CheckConstraint(condition=models.Q(('cantidad__gte', 1)), name='venta_medias_item_cantidad_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='InventorySaleMethod',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('position', models.PositiveSmallIntegerField()),
                ('metodo', models.CharField(choices=METHOD_CHOICES, max_length=20)),
                ('monto', models.DecimalField(decimal_places=2, max_digits=12)),
                ('comprobante_path', models.CharField(blank=True, max_length=500)),
                ('sale', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='methods', to='inventory.inventorysale')),
            ],
            options={
                'verbose_name': 'Inventory Sale Method',
                'verbose_name_plural': 'Inventory Sale Methods',
                'db_table': 'venta_medias_metodo',
                'ordering': ['position'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('monto__gt', 0)), name='venta_medias_metodo_monto_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ProductReturn',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('secuencia', models.PositiveBigIntegerField(editable=False, unique=True)),
                ('numero_devolucion', models.CharField(editable=False, max_length=20, unique=True)),
                ('cantidad', models.PositiveIntegerField()),
                ('motivo', models.TextField()),
                ('metodo_reembolso', models.CharField(choices=[('efectivo', 'Efectivo'), ('cambio_producto', 'Cambio de producto')], max_length=20)),
                ('foto_path', models.CharField(blank=True, max_length=500)),
                ('estado', models.CharField(choices=[('pendiente', 'Pendiente'), ('aprobada', 'Aprobada'), ('rechazada', 'Rechazada')], default='pendiente', max_length=20)),
                ('revisado_at', models.DateTimeField(blank=True, null=True)),
                ('notas_revision', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='returns_requested', to=settings.AUTH_USER_MODEL)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='returns', to='inventory.product')),
                ('revisado_por', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='returns_reviewed', to=settings.AUTH_USER_MODEL)),
                ('sale', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='returns', to='inventory.inventorysale')),
                ('sale_item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='returns', to='inventory.inventorysaleitem')),
            ],
            options={
                'verbose_name': 'Product Return',
                'verbose_name_plural': 'Product Returns',
                'db_table': 'devolucion',
                'ordering': ['-secuencia'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('cantidad__gte', 1)), name='devolucion_cantidad_positive'),
                ],
            },
        ),
    ]
