from django.contrib import admin
from .models import CashClosing


@admin.register(CashClosing)
class CashClosingAdmin(admin.ModelAdmin):
    """Closings are created and reopened through the API only."""
    list_display = ['cierre_numero', 'modulo', 'fecha_cierre', 'grand_total', 'diferencia', 'estado']
    list_filter = ['modulo', 'estado']
    date_hierarchy = 'fecha_cierre'

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
