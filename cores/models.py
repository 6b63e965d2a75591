from django.db import models
from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.utils import timezone


class LogQuerySet(models.QuerySet):
    def for_exam(self, exam_id):
        # Log values store ids as strings, whatever the caller passed
        return self.filter(value__testId=str(exam_id))

    def mock_submissions(self):
        return self.filter(action=Log.SUBMIT_MOCK_ATTEMPT)


class Log(models.Model):
    """
    Generic action record. Serves as the audit trail and as the secondary
    store for mock attempts, whose progress only ever lives in `value`.
    """
    START_ATTEMPT = 'start-attempt'
    START_MOCK_ATTEMPT = 'start-mock-attempt'
    SUBMIT_MOCK_ATTEMPT = 'submit-mock-attempt'

    action = models.CharField(max_length=100, db_index=True)
    timestamp = models.DateTimeField(default=timezone.now)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='logs')
    value = models.JSONField(null=True, blank=True)
    details = models.TextField(blank=True)

    objects = LogQuerySet.as_manager()

    class Meta:
        ordering = ['-timestamp']

    def __str__(self):
        return f"{self.action} - {self.user} - {self.timestamp}"


class Feedback(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='feedbacks', help_text="User who submitted the feedback"
    )
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    ease_of_use = models.CharField(max_length=255, blank=True)
    features = models.CharField(max_length=255, blank=True)
    performance = models.CharField(max_length=255, blank=True)
    recommendation = models.CharField(max_length=255, blank=True, help_text="Would you recommend this system to others?")
    comments = models.TextField(blank=True, help_text="Additional comments or suggestions")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Feedback {self.id} ({self.rating}/5)"
