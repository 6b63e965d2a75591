import logging

from rest_framework import generics, permissions, status, viewsets
from rest_framework.views import APIView
from rest_framework.response import Response
from django.contrib.auth import get_user_model

from cores.models import Log

from .authentication import set_auth_cookie, clear_auth_cookie
from .serializers import LoginSerializer, UserSerializer, UserAdminSerializer

logger = logging.getLogger(__name__)

User = get_user_model()

# --- 1. User Management (CRUD for Admin) ---
class UserViewSet(viewsets.ModelViewSet):
    """
    Admin-only endpoint to manage all users.
    Every change is recorded in the activity log.
    """
    queryset = User.objects.all().order_by('-date_joined')
    serializer_class = UserAdminSerializer
    permission_classes = [permissions.IsAdminUser]

    def get_queryset(self):
        queryset = super().get_queryset()
        role = self.request.query_params.get('role')
        if role:
            queryset = queryset.filter(role=role)
        return queryset

    def perform_create(self, serializer):
        user = serializer.save()
        Log.objects.create(
            user=self.request.user,
            action='create-user',
            value={'userId': user.id, 'role': user.role},
            details=f"Created new user: {user.email} (Role: {user.role})"
        )

    def perform_update(self, serializer):
        user = serializer.save()
        Log.objects.create(
            user=self.request.user,
            action='update-user',
            value={'userId': user.id},
            details=f"Updated profile for: {user.email}"
        )

    def perform_destroy(self, instance):
        Log.objects.create(
            user=self.request.user,
            action='delete-user',
            value={'userId': instance.id},
            details=f"Deleted user account: {instance.email}"
        )
        instance.delete()

# --- 2. Authentication Views ---
class LoginView(generics.GenericAPIView):
    """
    Checks credentials and stores a signed session token in an httpOnly cookie.
    """
    serializer_class = LoginSerializer
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = serializer.user
        Log.objects.create(user=user, action='login', details=f"{user.email} logged in")
        logger.info(f"User {user.id} logged in")

        response = Response({
            "success": True,
            "message": "Login successful",
            "user": serializer.validated_data['user'],
        })
        return set_auth_cookie(response, serializer.validated_data['token'])

    def get(self, request):
        return Response({"error": "Use POST method to login"}, status=status.HTTP_405_METHOD_NOT_ALLOWED)


class LogoutView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        if request.user.is_authenticated:
            logger.info(f"User {request.user.id} logged out")
        response = Response({"success": True, "message": "Logged out successfully"})
        return clear_auth_cookie(response)

    def get(self, request):
        return Response({"error": "Use POST method to logout"}, status=status.HTTP_405_METHOD_NOT_ALLOWED)

# --- 3. Current User ---
class MeView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return Response({"success": True, "data": UserSerializer(request.user).data})
