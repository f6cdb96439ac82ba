from django.contrib import admin

from .models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("name", "email", "phone", "hcp_customer_id", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name", "email", "phone", "hcp_customer_id")
    readonly_fields = ("created_at", "updated_at")
