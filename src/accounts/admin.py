from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.db.models import Count, Q

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Staff accounts: comfort pros, CSRs and admins."""

    list_display = (
        "email",
        "get_full_name",
        "role",
        "open_estimates",
        "is_active",
        "date_joined",
    )
    list_filter = ("role", "is_active", "is_staff")
    search_fields = ("email", "first_name", "last_name", "phone")
    ordering = ("last_name", "first_name")
    actions = ("deactivate_users",)

    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Profile", {"fields": ("first_name", "last_name", "phone")}),
        ("Role", {"fields": ("role", "is_active", "is_staff", "is_superuser")}),
        ("Important dates", {"fields": ("last_login", "date_joined")}),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "first_name", "last_name", "role", "password1", "password2"),
            },
        ),
    )

    def get_queryset(self, request):
        from estimates.models import Estimate

        return super().get_queryset(request).annotate(
            _open_estimates=Count(
                "assigned_estimates",
                filter=Q(assigned_estimates__status__in=Estimate.OPEN_STATUSES),
            ),
        )

    @admin.display(description="Open estimates", ordering="_open_estimates")
    def open_estimates(self, obj):
        return obj._open_estimates

    @admin.action(description="Deactivate selected users (stops notifications)")
    def deactivate_users(self, request, queryset):
        updated = queryset.update(is_active=False)
        self.message_user(request, f"{updated} user(s) deactivated.")
