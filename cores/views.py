import logging

from rest_framework import generics, permissions, status
from rest_framework.response import Response
from .models import Log, Feedback
from .serializers import LogSerializer, FeedbackSerializer

logger = logging.getLogger(__name__)


class FeedbackView(generics.ListCreateAPIView):
    """
    Anyone may leave feedback; the author is attached when logged in.
    Only admins can read it back.
    """
    queryset = Feedback.objects.select_related('user').all()
    serializer_class = FeedbackSerializer

    def get_permissions(self):
        if self.request.method == 'POST':
            return [permissions.AllowAny()]
        return [permissions.IsAdminUser()]

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = request.user if request.user.is_authenticated else None
        feedback = serializer.save(user=user)
        logger.info(f"Feedback {feedback.id} received (user={getattr(user, 'id', None)})")
        return Response({"success": True, "id": feedback.id}, status=status.HTTP_201_CREATED)


class LogListView(generics.ListAPIView):
    # Select related avoids N+1 queries when fetching users
    queryset = Log.objects.select_related('user').all().order_by('-timestamp')
    serializer_class = LogSerializer
    permission_classes = [permissions.IsAdminUser]

    def get_queryset(self):
        queryset = super().get_queryset()
        action = self.request.query_params.get('action')
        if action:
            queryset = queryset.filter(action=action)
        user_id = self.request.query_params.get('user')
        if user_id:
            queryset = queryset.filter(user_id=user_id)
        return queryset
