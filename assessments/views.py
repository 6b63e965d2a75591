import logging

from rest_framework import generics, permissions, status, views
from rest_framework.response import Response

from . import services
from .models import Attempt
from .permissions import IsStudent
from .serializers import ActiveAttemptSerializer, ResultSerializer

logger = logging.getLogger(__name__)


# --- ATTEMPT VIEWS ---

class AttemptDetailView(views.APIView):
    """The attempt being taken, with its questions and saved responses."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, test_id, attempt_id):
        attempt = services.get_owned_attempt(request.user, test_id, attempt_id, allow_admin=True)
        return Response(ActiveAttemptSerializer(attempt).data)


class SaveResponseView(views.APIView):
    """
    Saves the answer to one question while the attempt is running.
    Payload: { "questionId": 4, "response": "17", "timeSpent": 35 }
    """
    permission_classes = [permissions.IsAuthenticated, IsStudent]

    def post(self, request, test_id, attempt_id):
        question_id = request.data.get('questionId')
        response = request.data.get('response')
        time_spent = request.data.get('timeSpent')

        if not question_id or response is None:
            return Response({"error": "Question ID and response are required"}, status=status.HTTP_400_BAD_REQUEST)
        if time_spent is not None:
            try:
                time_spent = max(0, int(time_spent))
            except (TypeError, ValueError):
                return Response({"error": "timeSpent must be a number of seconds"}, status=status.HTTP_400_BAD_REQUEST)

        attempt = services.get_owned_attempt(request.user, test_id, attempt_id)
        _, response_count = services.save_response(attempt, question_id, response, time_spent)

        return Response({
            "success": True,
            "message": "Response saved successfully",
            "responseCount": response_count,
        })


class SubmitAttemptView(views.APIView):
    """
    Student submits the attempt.
    Grades the saved responses immediately.
    """
    permission_classes = [permissions.IsAuthenticated, IsStudent]

    def post(self, request, test_id, attempt_id):
        attempt = services.get_owned_attempt(request.user, test_id, attempt_id)
        attempt, result = services.submit_attempt(attempt, request.data.get('answers'))

        return Response({
            "success": True,
            "message": "Test submitted successfully",
            "attemptId": str(attempt.id),
            "score": result['score'],
            "gradingDetails": result['details'],
        })


class TimeExpiredView(views.APIView):
    """
    The client reports that the countdown reached zero.
    Payload (optional): { "elapsedSeconds": 3600 }
    """
    permission_classes = [permissions.IsAuthenticated]
    allow_admin = False

    def reported_elapsed(self, request):
        elapsed = request.data.get('elapsedSeconds')
        if elapsed is None:
            return None
        return int(elapsed)

    def post(self, request, test_id, attempt_id):
        try:
            elapsed = self.reported_elapsed(request)
        except (TypeError, ValueError):
            return Response({"error": "elapsedSeconds must be a number"}, status=status.HTTP_400_BAD_REQUEST)

        attempt = services.get_owned_attempt(
            request.user, test_id, attempt_id, allow_admin=self.allow_admin
        )
        attempt, result = services.expire_attempt(attempt, reported_elapsed=elapsed)

        if result is None:
            return Response({
                "message": "Attempt is not in progress",
                "success": False,
                "status": attempt.status,
            })

        logger.info(f"Attempt {attempt.id} timed out by user {request.user.id}")
        return Response({
            "message": "Attempt marked as timed out",
            "success": True,
            "attemptId": str(attempt.id),
            "score": result['score'],
        })


class TimeoutView(TimeExpiredView):
    """Force an attempt to time out. Admins may do this for any attempt."""
    allow_admin = True

    def reported_elapsed(self, request):
        return None


class VerifyAttemptView(views.APIView):
    """Tells the client whether an attempt belongs to the test in the URL."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, test_id, attempt_id):
        attempt = services.get_owned_attempt(
            request.user, test_id, attempt_id, allow_admin=True, check_exam=False
        )
        return Response({
            "success": True,
            "testId": str(attempt.exam_id),
            "match": str(attempt.exam_id) == str(test_id),
        })


# --- RESULT VIEWS ---

class ResultListView(views.APIView):
    """
    The student's finished attempts, newest first.
    Query: ?cursor=<nextCursor of the previous page>&limit=10
    """
    permission_classes = [permissions.IsAuthenticated, IsStudent]

    def get(self, request):
        cursor = request.query_params.get('cursor')
        if cursor:
            try:
                cursor = services.parse_cursor(cursor)
            except ValueError:
                return Response({"error": "Invalid cursor"}, status=status.HTTP_400_BAD_REQUEST)
        else:
            cursor = None

        try:
            limit = min(max(int(request.query_params.get('limit', 10)), 1), 50)
        except ValueError:
            return Response({"error": "limit must be a number"}, status=status.HTTP_400_BAD_REQUEST)

        items, next_cursor, has_more = services.list_results(request.user, cursor=cursor, limit=limit)
        return Response({"data": items, "nextCursor": next_cursor, "hasMore": has_more})


class ResultDetailView(generics.RetrieveAPIView):
    """A finished attempt with its per-question grading details."""
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = ResultSerializer
    lookup_url_kwarg = 'attempt_id'

    def get_queryset(self):
        queryset = Attempt.objects.select_related('exam').exclude(status=Attempt.Status.IN_PROGRESS)
        if not self.request.user.is_staff:
            queryset = queryset.filter(student=self.request.user)
        return queryset
