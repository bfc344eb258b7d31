# Generated migration for clinical app - patients, services, appointments

import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('authz', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Patient',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('nombre', models.CharField(max_length=100)),
                ('apellido', models.CharField(max_length=100)),
                ('cedula', models.CharField(max_length=20, unique=True)),
                ('telefono', models.CharField(blank=True, max_length=30)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('fecha_nacimiento', models.DateField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='patients_created', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Patient',
                'verbose_name_plural': 'Patients',
                'db_table': 'paciente',
                'indexes': [models.Index(fields=['apellido', 'nombre'], name='idx_paciente_nombre')],
            },
        ),
        migrations.CreateModel(
            name='Service',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('nombre', models.CharField(max_length=255)),
                ('precio_base', models.DecimalField(decimal_places=2, max_digits=12)),
                ('precio_variable', models.BooleanField(default=False)),
                ('precio_minimo', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('precio_maximo', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('activo', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Service',
                'verbose_name_plural': 'Services',
                'db_table': 'servicio',
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('precio_base__gte', 0)), name='servicio_precio_base_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Appointment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('fecha_hora_inicio', models.DateTimeField()),
                ('fecha_hora_fin', models.DateTimeField()),
                ('estado', models.CharField(
                    choices=[
                        ('programada', 'Programada'),
                        ('confirmada', 'Confirmada'),
                        ('en_sala', 'En Sala de Espera'),
                        ('en_atencion', 'En Atención'),
                        ('completada', 'Completada'),
                        ('cancelada', 'Cancelada'),
                        ('no_asistio', 'No Asistió'),
                    ],
                    default='programada',
                    max_length=20
                )),
                ('motivo', models.CharField(blank=True, max_length=500)),
                ('notas', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='appointments_created', to=settings.AUTH_USER_MODEL)),
                ('doctor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='appointments', to='authz.doctor')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='appointments', to='clinical.patient')),
            ],
            options={
                'verbose_name': 'Appointment',
                'verbose_name_plural': 'Appointments',
                'db_table': 'cita',
                'indexes': [
                    models.Index(fields=['doctor', 'fecha_hora_inicio'], name='idx_cita_doctor_inicio'),
                    models.Index(fields=['patient'], name='idx_cita_paciente'),
                    models.Index(fields=['estado'], name='idx_cita_estado'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('fecha_hora_fin__gt', models.F('fecha_hora_inicio'))), name='cita_fin_despues_de_inicio'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AppointmentService',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('nombre_servicio', models.CharField(max_length=255)),
                ('precio_unitario', models.DecimalField(decimal_places=2, max_digits=12)),
                ('cantidad', models.PositiveIntegerField(default=1)),
                ('subtotal', models.DecimalField(decimal_places=2, max_digits=12)),
                ('estado_pago', models.CharField(choices=[('pendiente', 'Pendiente'), ('pagado', 'Pagado')], default='pendiente', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('appointment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='services', to='clinical.appointment')),
                ('service', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='appointment_services', to='clinical.service')),
            ],
            options={
                'verbose_name': 'Appointment Service',
                'verbose_name_plural': 'Appointment Services',
                'db_table': 'cita_servicio',
                'indexes': [models.Index(fields=['estado_pago'], name='idx_cita_servicio_pago')],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('cantidad__gte', 1)), name='cita_servicio_cantidad_positive'),
                    models.CheckConstraint(condition=models.Q(('precio_unitario__gte', 0)), name='cita_servicio_precio_non_negative'),
                ],
            },
        ),
    ]
