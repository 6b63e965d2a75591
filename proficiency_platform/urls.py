from django.contrib import admin
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from users.views import UserViewSet

router = DefaultRouter(trailing_slash=False)
router.register(r'users', UserViewSet, basename='user')

urlpatterns = [
    path('admin/', admin.site.urls),

    # App URLs. users.urls comes first so users/me is not read as a user id.
    path('api/', include('users.urls')),
    path('api/', include('exams.urls')),
    path('api/', include('assessments.urls')),
    path('api/', include('cores.urls')),
    path('api/', include(router.urls)),
]
