# Generated migration for core app - gapless sequence counters

from django.db import migrations, models


COUNTER_NAMES = [
    'factura',
    'cierre_clinica',
    'cierre_medias',
    'compra',
    'venta_medias',
    'devolucion',
]


def seed_counters(apps, schema_editor):
    """One row per counter so the first issuer has a row to lock."""
    SequenceCounter = apps.get_model('core', 'SequenceCounter')
    for name in COUNTER_NAMES:
        SequenceCounter.objects.get_or_create(name=name, defaults={'last_value': 0})


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='SequenceCounter',
            fields=[
                ('name', models.CharField(
                    choices=[
                        ('factura', 'Factura'),
                        ('cierre_clinica', 'Cierre de caja clínica'),
                        ('cierre_medias', 'Cierre de caja medias'),
                        ('compra', 'Compra'),
                        ('venta_medias', 'Venta de medias'),
                        ('devolucion', 'Devolución'),
                    ],
                    max_length=50,
                    primary_key=True,
                    serialize=False
                )),
                ('last_value', models.PositiveBigIntegerField(default=0)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Sequence Counter',
                'verbose_name_plural': 'Sequence Counters',
                'db_table': 'sequence_counter',
            },
        ),
        migrations.RunPython(seed_counters, migrations.RunPython.noop),
    ]
