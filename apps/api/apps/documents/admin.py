from django.contrib import admin
from .models import Document, DocumentEvent, LifecycleRun, OrphanedObject


class DocumentEventInline(admin.TabularInline):
    model = DocumentEvent
    extra = 0
    readonly_fields = ['event_type', 'timestamp', 'sequence']
    can_delete = False


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    list_display = [
        'title',
        'sender_clinic_name',
        'status',
        'storage_class',
        'last_accessed',
        'migration_in_progress',
        'created_at'
    ]
    list_filter = ['status', 'storage_class', 'migration_in_progress', 'created_at']
    search_fields = ['title', 'object_key', 'sender_clinic_name']
    readonly_fields = [
        'id',
        'bucket',
        'object_key',
        'storage_class',
        'sha256',
        'migration_token',
        'migration_started_at',
        'created_at',
        'updated_at'
    ]
    autocomplete_fields = ['clinic', 'created_by_user']
    inlines = [DocumentEventInline]

    fieldsets = (
        ('Document Info', {
            'fields': ('id', 'title', 'clinic', 'status', 'date_signed')
        }),
        ('Parties', {
            'fields': (
                'recipient_name', 'recipient_phone_number',
                'sender_clinic_name', 'sender_name', 'sender_phone_number',
                'created_by_user'
            )
        }),
        ('Storage', {
            'fields': (
                'bucket', 'object_key', 'storage_class', 'last_accessed',
                'content_type', 'size_bytes', 'sha256'
            )
        }),
        ('Migration Lock', {
            'fields': ('migration_in_progress', 'migration_token', 'migration_started_at'),
            'classes': ('collapse',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at')
        }),
    )


@admin.register(LifecycleRun)
class LifecycleRunAdmin(admin.ModelAdmin):
    list_display = [
        'run_key', 'status', 'hostname', 'started_at', 'finished_at',
        'cold_migrated', 'ice_migrated', 'skipped', 'failed', 'orphans_purged'
    ]
    list_filter = ['status']
    readonly_fields = list_display + ['id', 'error']


@admin.register(OrphanedObject)
class OrphanedObjectAdmin(admin.ModelAdmin):
    list_display = ['bucket', 'object_key', 'document_id', 'attempts', 'created_at']
    list_filter = ['bucket']
    search_fields = ['object_key']
