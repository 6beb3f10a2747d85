from django.contrib import admin
from .models import Contractor


@admin.register(Contractor)
class ContractorAdmin(admin.ModelAdmin):
    list_display = ['last_name', 'first_name', 'phone_number', 'clinic', 'created_at']
    list_filter = ['clinic']
    search_fields = ['last_name', 'first_name', 'phone_number']
    readonly_fields = ['id', 'created_at', 'updated_at']
    autocomplete_fields = ['clinic']
    filter_horizontal = ['documents']
