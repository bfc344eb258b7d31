from django.contrib import admin
from .models import Patient, Service, Appointment, AppointmentService


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ['nombre', 'apellido', 'cedula', 'telefono', 'created_at']
    search_fields = ['nombre', 'apellido', 'cedula']
    readonly_fields = ['id', 'created_at', 'updated_at']


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ['nombre', 'precio_base', 'precio_variable', 'precio_minimo', 'precio_maximo', 'activo']
    list_filter = ['activo', 'precio_variable']
    search_fields = ['nombre']
    readonly_fields = ['id', 'created_at', 'updated_at']


class AppointmentServiceInline(admin.TabularInline):
    model = AppointmentService
    extra = 0
    readonly_fields = ['nombre_servicio', 'precio_unitario', 'cantidad', 'subtotal', 'estado_pago', 'payment_item']
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    """
    Read-mostly: status and schedule changes must go through the booking
    and transition services, not the admin form.
    """
    list_display = ['fecha_hora_inicio', 'fecha_hora_fin', 'doctor', 'patient', 'estado']
    list_filter = ['estado', 'doctor']
    search_fields = ['patient__nombre', 'patient__apellido', 'patient__cedula']
    readonly_fields = [
        'id', 'patient', 'doctor', 'fecha_hora_inicio', 'fecha_hora_fin', 'estado',
        'created_by', 'created_at', 'updated_at',
    ]
    inlines = [AppointmentServiceInline]
    date_hierarchy = 'fecha_hora_inicio'
