import csv
import io
import logging

from django.conf import settings
from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import viewsets, permissions, status, filters
from rest_framework.decorators import action
from rest_framework.parsers import JSONParser, MultiPartParser, FormParser
from rest_framework.response import Response

from assessments import services
from assessments.permissions import IsStudent
from assessments.serializers import AttemptSerializer
from cores.models import Log

from .models import Course, Exam, Question, Option, Attachment, Assignment
from .serializers import (
    CourseSerializer, ExamSerializer, ExamDetailSerializer, ExamListSerializer,
    QuestionSerializer, AttachmentSerializer, AssignmentSerializer, AssignStudentsSerializer,
)

logger = logging.getLogger(__name__)


class CourseViewSet(viewsets.ModelViewSet):
    queryset = Course.objects.all().order_by('level', 'title')
    serializer_class = CourseSerializer

    filter_backends = [filters.SearchFilter]
    search_fields = ['title']

    def get_permissions(self):
        if self.action in ['list', 'retrieve']:
            return [permissions.IsAuthenticated()]
        return [permissions.IsAdminUser()]

    def get_queryset(self):
        queryset = super().get_queryset()
        user = self.request.user
        # Students can only read courses assigned to their level
        if not user.is_staff:
            queryset = queryset.filter(level=user.level)
        return queryset

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)


class AttachmentViewSet(viewsets.ModelViewSet):
    queryset = Attachment.objects.all().order_by('-created_at')
    serializer_class = AttachmentSerializer

    def get_permissions(self):
        if self.action in ['list', 'retrieve']:
            return [permissions.IsAuthenticated()]
        return [permissions.IsAdminUser()]

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)


class ExamViewSet(viewsets.ModelViewSet):
    queryset = Exam.objects.select_related('course').all().order_by('-created_at')

    # Enable search on title and course title
    filter_backends = [filters.SearchFilter]
    search_fields = ['title', 'course__title']

    def get_serializer_class(self):
        if self.request.user.is_staff:
            if self.action == 'retrieve':
                return ExamDetailSerializer
            return ExamSerializer
        # Students get the assignment-centred view
        return ExamListSerializer

    def get_permissions(self):
        if self.action in ['list', 'retrieve']:
            return [permissions.IsAuthenticated()]
        if self.action in ['start_attempt', 'submit_attempt']:
            return [permissions.IsAuthenticated(), IsStudent()]
        return [permissions.IsAdminUser()]

    def get_queryset(self):
        queryset = super().get_queryset()
        user = self.request.user
        # Students can only read tests assigned to them
        if not user.is_staff:
            queryset = queryset.filter(assignments__student=user).distinct()
        return queryset

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    @action(detail=True, methods=['post'], url_path='start-attempt')
    def start_attempt(self, request, pk=None):
        """
        Start a test, or resume the attempt already in progress.
        A resumed attempt answers with a redirect to it.
        """
        # Look up outside the student queryset so unassigned tests give 403, not 404
        exam = get_object_or_404(Exam, pk=pk)
        user = request.user

        if settings.MOCK_ATTEMPTS:
            attempt_id, assignment = services.start_mock_attempt(exam, user)
            url = (
                f"/tests/{exam.id}/mock-attempt/{attempt_id}"
                f"?testId={exam.id}&studentId={user.id}&assignmentId={assignment.id}"
            )
            return Response(
                {"attemptId": str(attempt_id), "mock": True, "redirectUrl": url},
                status=status.HTTP_302_FOUND,
                headers={'Location': url},
            )

        attempt, created = services.start_attempt(exam, user)
        url = f"/tests/{exam.id}/attempt/{attempt.id}"
        data = AttemptSerializer(attempt).data
        data['redirectUrl'] = url

        if not created:
            logger.info(f"User {user.id} resumed attempt {attempt.id} on test {exam.id}")
            return Response(data, status=status.HTTP_302_FOUND, headers={'Location': url})
        return Response(data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='submit-attempt')
    def submit_attempt(self, request, pk=None):
        """
        Receives answers from the student and grades them.
        Payload: { "attemptId": 12, "answers": { "<question id>": "<option id or text>" } }
        """
        exam = get_object_or_404(Exam, pk=pk)
        attempt_id = request.data.get('attemptId')
        answers = request.data.get('answers') or {}

        if not attempt_id:
            return Response({"error": "Missing testId or attemptId"}, status=status.HTTP_400_BAD_REQUEST)
        if not isinstance(answers, dict):
            return Response({"error": "answers must map question ids to answers"}, status=status.HTTP_400_BAD_REQUEST)

        if services.is_mock_attempt(exam, request.user, attempt_id):
            result = services.submit_mock_attempt(exam, request.user, attempt_id, answers)
        else:
            attempt = services.get_owned_attempt(request.user, exam.id, attempt_id)
            attempt, result = services.submit_attempt(attempt, answers)

        return Response({
            "message": "Test submitted successfully",
            "attemptId": str(attempt_id),
            "score": result['score'],
            "gradingDetails": result['details'],
        })

    @action(detail=True, methods=['post'], url_path='assign-students')
    def assign_students(self, request, pk=None):
        """
        Assigns this test to students, or moves the due date of existing assignments.
        Payload: { "students": [1, 2, 3], "due_date": "2030-01-01T12:00:00Z" }
        """
        exam = self.get_object()
        serializer = AssignStudentsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        assignments = []
        with transaction.atomic():
            for student in serializer.validated_data['students']:
                assignment, _ = Assignment.objects.update_or_create(
                    exam=exam, student=student,
                    defaults={'due_date': serializer.validated_data['due_date']},
                )
                assignments.append(assignment)

        Log.objects.create(
            user=request.user,
            action='assign-test',
            value={'testId': str(exam.id), 'students': [a.student_id for a in assignments]},
            details=f"Assigned {exam.title} to {len(assignments)} students",
        )
        return Response(AssignmentSerializer(assignments, many=True).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'], url_path='assignments')
    def assignments(self, request, pk=None):
        exam = self.get_object()
        queryset = exam.assignments.select_related('student').order_by('due_date')
        return Response(AssignmentSerializer(queryset, many=True).data)


class QuestionViewSet(viewsets.ModelViewSet):
    queryset = Question.objects.select_related('exam').prefetch_related('options').order_by('exam_id', 'order_number', 'id')
    serializer_class = QuestionSerializer
    permission_classes = [permissions.IsAdminUser]

    # Enable Search and Filtering for the Question Bank
    filter_backends = [filters.SearchFilter]
    search_fields = ['text', 'exam__title']

    # Bulk upload needs multipart, everything else is JSON
    parser_classes = (JSONParser, MultiPartParser, FormParser)

    def get_queryset(self):
        queryset = super().get_queryset()
        # Filter by test if provided ?test_id=1
        exam_id = self.request.query_params.get('test_id')
        if exam_id:
            queryset = queryset.filter(exam_id=exam_id)
        return queryset

    @action(detail=False, methods=['post'], url_path='bulk-upload')
    def bulk_upload(self, request):
        """
        Upload questions for one test via CSV.
        Expected CSV Header: question_text, question_type, points, options, correct_answer
        Options are separated by '|'.
        """
        file_obj = request.FILES.get('file')
        if not file_obj:
            return Response({"error": "No file uploaded"}, status=status.HTTP_400_BAD_REQUEST)

        exam_id = request.data.get('test_id')
        exam = Exam.objects.filter(id=exam_id).first() if exam_id else None
        if exam is None:
            return Response({"error": "A valid test_id is required"}, status=status.HTTP_400_BAD_REQUEST)

        try:
            decoded_file = file_obj.read().decode('utf-8')
        except UnicodeDecodeError:
            return Response({"error": "File must be UTF-8 encoded CSV"}, status=status.HTTP_400_BAD_REQUEST)

        reader = csv.DictReader(io.StringIO(decoded_file))
        order_start = exam.questions.count()
        created_count = 0

        try:
            with transaction.atomic():
                for line, row in enumerate(reader, start=2):
                    text = (row.get('question_text') or '').strip()
                    if not text:
                        raise ValueError(f"Line {line}: question_text is empty")

                    q_type = (row.get('question_type') or 'mcq').strip().lower()
                    if q_type not in Question.QuestionType.values:
                        raise ValueError(f"Line {line}: unknown question_type '{q_type}'")

                    correct_ans_text = (row.get('correct_answer') or '').strip()
                    question = Question.objects.create(
                        exam=exam,
                        text=text,
                        question_type=q_type,
                        points=int(row.get('points') or 1),
                        order_number=order_start + created_count + 1,
                        correct_answer=correct_ans_text,
                    )

                    # Handle Options (for MCQs)
                    if q_type == Question.QuestionType.MCQ:
                        raw_options = [o.strip() for o in (row.get('options') or '').split('|') if o.strip()]
                        for position, clean_text in enumerate(raw_options, start=1):
                            Option.objects.create(
                                question=question,
                                text=clean_text,
                                is_correct=(clean_text.lower() == correct_ans_text.lower()),
                                order_number=position,
                            )

                    created_count += 1
        except ValueError as e:
            logger.warning(f"Bulk upload for test {exam.id} rejected: {e}")
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({"status": f"Successfully uploaded {created_count} questions"}, status=status.HTTP_201_CREATED)
