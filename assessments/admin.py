from django.contrib import admin

from .models import Attempt, AttemptResponse


class AttemptResponseInline(admin.TabularInline):
    model = AttemptResponse
    extra = 0
    readonly_fields = ['updated_at']


@admin.register(Attempt)
class AttemptAdmin(admin.ModelAdmin):
    list_display = ['exam', 'student', 'start_time', 'end_time', 'score', 'status']
    list_filter = ['status', 'exam']
    search_fields = ['exam__title', 'student__email']
    readonly_fields = ['grading_details']
    inlines = [AttemptResponseInline]
