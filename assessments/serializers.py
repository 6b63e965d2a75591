from rest_framework import serializers
from .models import Attempt, AttemptResponse
from exams.serializers import StudentQuestionSerializer

class AttemptResponseSerializer(serializers.ModelSerializer):
    questionId = serializers.IntegerField(source='question_id', read_only=True)
    isCorrect = serializers.BooleanField(source='is_correct', read_only=True)
    timeSpent = serializers.IntegerField(source='time_spent', read_only=True)

    class Meta:
        model = AttemptResponse
        fields = ['questionId', 'response', 'isCorrect', 'timeSpent']

class AttemptSerializer(serializers.ModelSerializer):
    """Lightweight serializer for lists / redirects."""
    testId = serializers.IntegerField(source='exam_id', read_only=True)
    testName = serializers.CharField(source='exam.title', read_only=True)
    studentId = serializers.IntegerField(source='student_id', read_only=True)
    attemptNumber = serializers.IntegerField(source='attempt_number', read_only=True)
    startTime = serializers.DateTimeField(source='start_time', read_only=True)
    endTime = serializers.DateTimeField(source='end_time', read_only=True)
    timeLimit = serializers.IntegerField(source='exam.time_limit', read_only=True)
    timeRemainingSeconds = serializers.SerializerMethodField()

    class Meta:
        model = Attempt
        fields = [
            'id', 'testId', 'testName', 'studentId', 'attemptNumber', 'status',
            'startTime', 'endTime', 'score', 'timeLimit', 'timeRemainingSeconds'
        ]
        read_only_fields = fields

    def get_timeRemainingSeconds(self, obj):
        return obj.time_remaining_seconds()

class ActiveAttemptSerializer(AttemptSerializer):
    """Heavy serializer for taking the test. Includes QUESTIONS without answers."""
    questions = StudentQuestionSerializer(source='exam.questions', many=True, read_only=True)
    responses = AttemptResponseSerializer(many=True, read_only=True)

    class Meta(AttemptSerializer.Meta):
        fields = AttemptSerializer.Meta.fields + ['questions', 'responses']

class ResultSerializer(AttemptSerializer):
    """A finished attempt with its grading breakdown."""
    pointsAwarded = serializers.IntegerField(source='points_awarded', read_only=True)
    pointsPossible = serializers.IntegerField(source='points_possible', read_only=True)
    gradingDetails = serializers.JSONField(source='grading_details', read_only=True)
    questions = StudentQuestionSerializer(source='exam.questions', many=True, read_only=True)

    class Meta(AttemptSerializer.Meta):
        fields = AttemptSerializer.Meta.fields + ['pointsAwarded', 'pointsPossible', 'gradingDetails', 'questions']
