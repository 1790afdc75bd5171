"""
Django Admin configuration for cart models.
"""
from django.contrib import admin
from .models import Cart, CartItem


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0
    readonly_fields = ['product', 'product_name', 'price', 'quantity', 'subtotal', 'added_at']
    can_delete = False


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'total', 'item_count', 'updated_at']
    search_fields = ['user__email']
    ordering = ['-updated_at']
    readonly_fields = ['total', 'created_at', 'updated_at']
    raw_id_fields = ['user']
    inlines = [CartItemInline]

    def item_count(self, obj):
        return obj.items.count()
    item_count.short_description = 'Items'
