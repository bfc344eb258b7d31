from django.contrib import admin
from .models import Payment, PaymentItem, PaymentMethod


class PaymentItemInline(admin.TabularInline):
    model = PaymentItem
    extra = 0
    can_delete = False
    readonly_fields = ['position', 'service', 'nombre_servicio', 'precio_unitario', 'cantidad', 'subtotal']

    def has_add_permission(self, request, obj=None):
        return False


class PaymentMethodInline(admin.TabularInline):
    model = PaymentMethod
    extra = 0
    can_delete = False
    readonly_fields = ['position', 'metodo', 'monto', 'comprobante_path']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """Payments are immutable; voiding goes through the API."""
    list_display = ['numero_factura', 'patient', 'total', 'estado', 'created_at']
    list_filter = ['estado']
    search_fields = ['numero_factura', 'patient__cedula', 'patient__apellido']
    inlines = [PaymentItemInline, PaymentMethodInline]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
