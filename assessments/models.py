# assessments/models.py
from django.db import models
from django.conf import settings
from django.core.validators import MaxValueValidator
from django.utils import timezone
from exams.models import Exam, Question, Assignment

class Attempt(models.Model):
    """Tracks a student's specific attempt at a test."""
    class Status(models.TextChoices):
        IN_PROGRESS = "in_progress", "In Progress"
        COMPLETED = "completed", "Completed"
        TIMED_OUT = "timed_out", "Timed Out"

    exam = models.ForeignKey(Exam, on_delete=models.CASCADE, related_name='attempts')
    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='attempts')
    assignment = models.ForeignKey(Assignment, on_delete=models.CASCADE, related_name='attempts')

    start_time = models.DateTimeField(default=timezone.now)
    end_time = models.DateTimeField(null=True, blank=True)
    attempt_number = models.PositiveIntegerField(default=1)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.IN_PROGRESS)

    # Filled in when the attempt is graded
    score = models.PositiveSmallIntegerField(null=True, blank=True, validators=[MaxValueValidator(100)])
    points_awarded = models.PositiveIntegerField(default=0)
    points_possible = models.PositiveIntegerField(default=0)
    grading_details = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ['-start_time']

    def __str__(self):
        return f"{self.student} - {self.exam.title} #{self.attempt_number}"

    @property
    def is_in_progress(self):
        return self.status == self.Status.IN_PROGRESS

    def elapsed_seconds(self, now=None):
        now = now or timezone.now()
        return max(0, int((now - self.start_time).total_seconds()))

    def time_remaining_seconds(self, now=None):
        if not self.is_in_progress:
            return 0
        return max(0, self.exam.time_limit_seconds - self.elapsed_seconds(now))


class AttemptResponse(models.Model):
    attempt = models.ForeignKey(Attempt, related_name='responses', on_delete=models.CASCADE)
    question = models.ForeignKey(Question, on_delete=models.CASCADE)

    # Option id for mcq, free text for fill-in-the-blank
    response = models.TextField(blank=True)
    is_correct = models.BooleanField(default=False)
    points_awarded = models.PositiveIntegerField(default=0)
    time_spent = models.PositiveIntegerField(default=0, help_text="Time spent (seconds)")
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('attempt', 'question')

    def __str__(self):
        return f"{self.attempt_id}:{self.question_id} = {self.response}"
