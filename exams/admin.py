from django.contrib import admin

from .models import Course, Exam, ExamAttachment, Attachment, Assignment, Question, Option


class ExamAttachmentInline(admin.TabularInline):
    model = ExamAttachment
    extra = 0


class AssignmentInline(admin.TabularInline):
    model = Assignment
    extra = 0
    autocomplete_fields = ['student']


class OptionInline(admin.TabularInline):
    model = Option
    extra = 0


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ['title', 'level', 'created_by', 'created_at']
    list_filter = ['level']
    search_fields = ['title']
    readonly_fields = ['created_by', 'created_at', 'updated_at']

    def save_model(self, request, obj, form, change):
        if not obj.created_by_id:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(Attachment)
class AttachmentAdmin(admin.ModelAdmin):
    list_display = ['title', 'url', 'created_at']
    search_fields = ['title', 'url']
    readonly_fields = ['created_by', 'created_at', 'updated_at']

    def save_model(self, request, obj, form, change):
        if not obj.created_by_id:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(Exam)
class ExamAdmin(admin.ModelAdmin):
    list_display = ['title', 'course', 'time_limit', 'attempt_limit', 'created_at']
    list_filter = ['test_type', 'course']
    search_fields = ['title', 'course__title']
    readonly_fields = ['created_by', 'created_at', 'updated_at']
    inlines = [ExamAttachmentInline, AssignmentInline]

    def save_model(self, request, obj, form, change):
        if not obj.created_by_id:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(Question)
class QuestionAdmin(admin.ModelAdmin):
    list_display = ['text', 'question_type', 'exam', 'points', 'order_number']
    list_filter = ['question_type', 'exam']
    search_fields = ['text', 'exam__title']
    inlines = [OptionInline]


@admin.register(Assignment)
class AssignmentAdmin(admin.ModelAdmin):
    list_display = ['exam', 'student', 'due_date', 'status']
    list_filter = ['status', 'exam']
    search_fields = ['exam__title', 'student__email']
