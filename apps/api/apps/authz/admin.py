from django.contrib import admin
from .models import User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ['phone_number', 'role', 'clinic', 'is_active', 'is_staff', 'created_at']
    list_filter = ['role', 'is_active', 'is_staff']
    search_fields = ['phone_number', 'first_name', 'last_name']
    readonly_fields = ['id', 'last_login', 'created_at', 'updated_at']
    autocomplete_fields = ['clinic']
    exclude = ['password', 'groups', 'user_permissions']
