from django.contrib import admin
from .models import SequenceCounter


@admin.register(SequenceCounter)
class SequenceCounterAdmin(admin.ModelAdmin):
    list_display = ['name', 'last_value', 'updated_at']
    readonly_fields = ['name', 'last_value', 'updated_at']

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
