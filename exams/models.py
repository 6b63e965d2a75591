# exams/models.py
from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone


class Course(models.Model):
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    # Students only see courses of their own level
    level = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1), MaxValueValidator(9)])

    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title


class Attachment(models.Model):
    """A file hosted on an external drive, referenced by URL."""
    title = models.CharField(max_length=255)
    url = models.URLField(max_length=500)

    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title


class Exam(models.Model):
    """A timed proficiency test, assigned to individual students."""
    class TestType(models.TextChoices):
        PDF = "pdf", "PDF"
        AUDIO = "audio", "Audio"
        BOTH = "both", "Both"

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='exams')

    time_limit = models.PositiveIntegerField(default=60, validators=[MinValueValidator(1)], help_text="Time limit in minutes")
    attempt_limit = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    test_type = models.CharField(max_length=10, choices=TestType.choices, default=TestType.PDF)

    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "test"

    def __str__(self):
        return self.title

    @property
    def time_limit_seconds(self):
        return self.time_limit * 60


class ExamAttachment(models.Model):
    class FileType(models.TextChoices):
        PDF = "pdf", "PDF"
        AUDIO = "audio", "Audio"

    exam = models.ForeignKey(Exam, on_delete=models.CASCADE, related_name='attachments')
    file_type = models.CharField(max_length=10, choices=FileType.choices)
    file = models.ForeignKey(Attachment, on_delete=models.CASCADE, related_name='exam_links')

    def __str__(self):
        return f"{self.exam} - {self.file}"


class Assignment(models.Model):
    """Links a student to a test with a due date and a progress status."""
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        IN_PROGRESS = "in_progress", "In Progress"
        COMPLETED = "completed", "Completed"

    exam = models.ForeignKey(Exam, on_delete=models.CASCADE, related_name='assignments')
    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='assignments')
    due_date = models.DateTimeField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)

    class Meta:
        unique_together = ('exam', 'student')

    def __str__(self):
        return f"{self.student} - {self.exam} ({self.status})"

    @property
    def is_overdue(self):
        return self.due_date < timezone.now()

    def mark(self, status):
        if self.status != status:
            self.status = status
            self.save(update_fields=['status'])


class Question(models.Model):
    class QuestionType(models.TextChoices):
        MCQ = "mcq", "Multiple Choice"
        FILL_BLANK = "fill_blank", "Fill in the Blank"

    exam = models.ForeignKey(Exam, related_name='questions', on_delete=models.CASCADE)

    text = models.TextField()
    question_type = models.CharField(max_length=20, choices=QuestionType.choices, default=QuestionType.MCQ)
    points = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    order_number = models.PositiveIntegerField(default=1, help_text="The order in which this question appears in the test")

    # Only used by fill-in-the-blank questions
    correct_answer = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['order_number', 'id']

    def __str__(self):
        return f"{self.text[:50]}..."

    @property
    def correct_option(self):
        # Iterate the (possibly prefetched) options instead of querying again
        for option in self.options.all():
            if option.is_correct:
                return option
        return None


class Option(models.Model):
    question = models.ForeignKey(Question, related_name='options', on_delete=models.CASCADE)
    text = models.CharField(max_length=255)
    is_correct = models.BooleanField(default=False)
    order_number = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ['order_number', 'id']

    def __str__(self):
        return self.text
