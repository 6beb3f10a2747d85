from django.contrib import admin
from .models import Clinic


@admin.register(Clinic)
class ClinicAdmin(admin.ModelAdmin):
    list_display = ['clinic_name', 'phone_number', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['clinic_name', 'phone_number']
    readonly_fields = ['id', 'created_at', 'updated_at']
