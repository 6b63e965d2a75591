from django.urls import path
from .views import FeedbackView, LogListView

urlpatterns = [
    path('feedback', FeedbackView.as_view(), name='feedback'),
    path('logs', LogListView.as_view(), name='logs'),
]
