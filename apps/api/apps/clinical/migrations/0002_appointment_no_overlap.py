# Database-level backstop for the booking lock: no two active appointments
# of the same doctor may overlap. PostgreSQL only (needs btree_gist); other
# backends skip it and rely on the doctor row lock in clinical.services.

from django.db import migrations


CREATE_EXCLUSION = """
CREATE EXTENSION IF NOT EXISTS btree_gist;
ALTER TABLE cita ADD CONSTRAINT cita_sin_solapamiento
    EXCLUDE USING gist (
        doctor_id WITH =,
        tstzrange(fecha_hora_inicio, fecha_hora_fin, '[)') WITH &&
    )
    WHERE (estado NOT IN ('cancelada', 'no_asistio'));
"""

DROP_EXCLUSION = "ALTER TABLE cita DROP CONSTRAINT IF EXISTS cita_sin_solapamiento;"


def add_exclusion_constraint(apps, schema_editor):
    if schema_editor.connection.vendor != 'postgresql':
        return
    schema_editor.execute(CREATE_EXCLUSION)


def remove_exclusion_constraint(apps, schema_editor):
    if schema_editor.connection.vendor != 'postgresql':
        return
    schema_editor.execute(DROP_EXCLUSION)


class Migration(migrations.Migration):

    dependencies = [
        ('clinical', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(add_exclusion_constraint, remove_exclusion_constraint),
    ]
