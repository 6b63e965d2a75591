from django.urls import path
from .views import (
    AttemptDetailView, SaveResponseView, SubmitAttemptView, TimeExpiredView,
    TimeoutView, VerifyAttemptView, ResultListView, ResultDetailView,
)

attempt_prefix = 'tests/<int:test_id>/attempt/<int:attempt_id>'

urlpatterns = [
    # --- Student Attempt Flow ---
    path(attempt_prefix, AttemptDetailView.as_view(), name='attempt-detail'),
    path(f'{attempt_prefix}/response', SaveResponseView.as_view(), name='attempt-response'),
    path(f'{attempt_prefix}/submit', SubmitAttemptView.as_view(), name='attempt-submit'),
    path(f'{attempt_prefix}/time-expired', TimeExpiredView.as_view(), name='attempt-time-expired'),
    path(f'{attempt_prefix}/timeout', TimeoutView.as_view(), name='attempt-timeout'),
    path(f'{attempt_prefix}/verify', VerifyAttemptView.as_view(), name='attempt-verify'),

    # --- Results ---
    path('results', ResultListView.as_view(), name='results'),
    path('results/<int:attempt_id>', ResultDetailView.as_view(), name='result-detail'),
]
