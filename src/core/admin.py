from django.contrib import admin

from core.models import Setting


@admin.register(Setting)
class SettingAdmin(admin.ModelAdmin):
    list_display = ("key", "updated_by", "updated_at")
    search_fields = ("key",)
    readonly_fields = ("created_at", "updated_at")
