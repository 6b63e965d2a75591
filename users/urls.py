from django.urls import path
from .views import LoginView, LogoutView, MeView

urlpatterns = [
    # --- Authentication ---
    path('auth/login', LoginView.as_view(), name='login'),
    path('auth/logout', LogoutView.as_view(), name='logout'),

    # --- Current User ---
    path('users/me', MeView.as_view(), name='users-me'),
]
