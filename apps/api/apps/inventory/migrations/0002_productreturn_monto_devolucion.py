# Refund value snapshot on returns

from decimal import Decimal

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('inventory', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='productreturn',
            name='monto_devolucion',
            field=models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Refund value snapshot: sale line unit price times cantidad', max_digits=12),
            preserve_default=False,
        ),
        migrations.AddConstraint(
            model_name='productreturn',
            constraint=models.CheckConstraint(condition=models.Q(('monto_devolucion__gte', 0)), name='devolucion_monto_non_negative'),
        ),
    ]
