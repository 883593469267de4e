"""
Read-only admin for accounts.

Users, roles, companies and memberships are written through the
repository only; the admin is for inspection.
"""

from django.contrib import admin

from .models import Company, CompanyMembership, User, UserRole


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class UserRoleInline(admin.TabularInline):
    model = UserRole
    extra = 0
    can_delete = False
    readonly_fields = ("name", "permissions", "created_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(User)
class UserAdmin(ReadOnlyAdmin):
    list_display = ("email", "first_name", "last_name", "is_active", "created_at")
    search_fields = ("email", "first_name", "last_name")
    readonly_fields = ("public_id", "created_at", "updated_at")
    exclude = ("password", "otp_hash", "groups", "user_permissions")
    inlines = [UserRoleInline]


class CompanyMembershipInline(admin.TabularInline):
    model = CompanyMembership
    extra = 0
    can_delete = False
    fields = ("user", "role", "title", "phone_number", "is_active")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Company)
class CompanyAdmin(ReadOnlyAdmin):
    list_display = ("name", "email", "industry", "is_active", "created_at")
    search_fields = ("name", "email")
    list_filter = ("is_active",)
    inlines = [CompanyMembershipInline]


@admin.register(CompanyMembership)
class CompanyMembershipAdmin(ReadOnlyAdmin):
    list_display = ("user", "company", "role", "title", "is_active")
    list_filter = ("role", "is_active")
    search_fields = ("user__email", "company__name", "phone_number")
