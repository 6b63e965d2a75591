from django.contrib import admin

from .models import Log, Feedback


@admin.register(Log)
class LogAdmin(admin.ModelAdmin):
    list_display = ['action', 'timestamp', 'user']
    list_filter = ['action', 'timestamp']
    search_fields = ['action', 'details', 'user__email']
    readonly_fields = ['timestamp']


@admin.register(Feedback)
class FeedbackAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'rating', 'recommendation', 'created_at']
    list_filter = ['rating', 'created_at']
    search_fields = ['comments', 'user__email']
    readonly_fields = ['created_at']
