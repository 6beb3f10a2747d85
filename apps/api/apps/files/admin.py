from django.contrib import admin
from .models import ClinicFile


@admin.register(ClinicFile)
class ClinicFileAdmin(admin.ModelAdmin):
    list_display = ['document_title', 'clinic', 'is_public', 'size_bytes', 'created_at']
    list_filter = ['is_public', 'clinic']
    search_fields = ['document_title', 'object_key']
    readonly_fields = ['id', 'bucket', 'object_key', 'content_type', 'size_bytes', 'created_at', 'updated_at']
    autocomplete_fields = ['clinic']
