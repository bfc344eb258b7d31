from django.contrib import admin
from .models import (
    InventorySale,
    InventorySaleItem,
    Product,
    ProductReturn,
    Purchase,
    PurchaseItem,
    StockMovement,
)


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    """Stock columns are read-only: they only change through stock movements."""
    list_display = ['codigo', 'tipo', 'talla', 'precio', 'stock_normal', 'stock_devoluciones', 'activo']
    list_filter = ['tipo', 'talla', 'activo']
    search_fields = ['codigo']
    readonly_fields = ['id', 'stock_normal', 'stock_devoluciones', 'created_at', 'updated_at']


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'product', 'tipo', 'bucket', 'cantidad', 'stock_antes', 'stock_despues']
    list_filter = ['tipo', 'bucket']
    date_hierarchy = 'created_at'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class PurchaseItemInline(admin.TabularInline):
    model = PurchaseItem
    extra = 0
    can_delete = False
    readonly_fields = ['product', 'cantidad', 'costo_unitario', 'subtotal']


@admin.register(Purchase)
class PurchaseAdmin(admin.ModelAdmin):
    list_display = ['numero_compra', 'proveedor', 'fecha_factura', 'total', 'estado']
    list_filter = ['estado']
    search_fields = ['numero_compra', 'proveedor', 'numero_factura']
    inlines = [PurchaseItemInline]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]


class InventorySaleItemInline(admin.TabularInline):
    model = InventorySaleItem
    extra = 0
    can_delete = False
    readonly_fields = ['position', 'product', 'codigo', 'tipo', 'talla', 'precio_unitario', 'cantidad', 'subtotal']


@admin.register(InventorySale)
class InventorySaleAdmin(admin.ModelAdmin):
    list_display = ['numero_venta', 'total', 'estado', 'created_at']
    list_filter = ['estado']
    search_fields = ['numero_venta']
    inlines = [InventorySaleItemInline]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]


@admin.register(ProductReturn)
class ProductReturnAdmin(admin.ModelAdmin):
    list_display = ['numero_devolucion', 'product', 'cantidad', 'estado', 'created_by', 'revisado_por']
    list_filter = ['estado', 'metodo_reembolso']

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]
