from django.contrib import admin

from .models import MediaItem, Setting


@admin.register(Setting)
class SettingAdmin(admin.ModelAdmin):
    list_display = ('key', 'updated_at')
    search_fields = ('key',)


@admin.register(MediaItem)
class MediaItemAdmin(admin.ModelAdmin):
    list_display = ('name', 'type', 'uploaded_at', 'deleted_at')
    list_filter = ('type',)
    search_fields = ('name', 'url')
