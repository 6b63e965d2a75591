# exams/serializers.py
from rest_framework import serializers
from django.contrib.auth import get_user_model
from .models import Course, Exam, Question, Option, Attachment, ExamAttachment, Assignment

User = get_user_model()

# --- Helper Serializers ---

class OptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Option
        fields = ['id', 'text', 'is_correct', 'order_number']

class StudentOptionSerializer(serializers.ModelSerializer):
    """Options as shown while taking a test: no correctness flag."""
    class Meta:
        model = Option
        fields = ['id', 'text', 'order_number']

class CourseSerializer(serializers.ModelSerializer):
    class Meta:
        model = Course
        fields = ['id', 'title', 'description', 'level', 'created_by', 'created_at', 'updated_at']
        read_only_fields = ['created_by', 'created_at', 'updated_at']

class AttachmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Attachment
        fields = ['id', 'title', 'url', 'created_by', 'created_at']
        read_only_fields = ['created_by', 'created_at']

class ExamAttachmentSerializer(serializers.ModelSerializer):
    title = serializers.CharField(source='file.title', read_only=True)
    url = serializers.CharField(source='file.url', read_only=True)

    class Meta:
        model = ExamAttachment
        fields = ['id', 'file_type', 'file', 'title', 'url']

# --- Question Serializers ---

class QuestionSerializer(serializers.ModelSerializer):
    # Map frontend 'question_text' to backend 'text'
    question_text = serializers.CharField(source='text')
    # Map frontend options array (strings) to backend Options models
    options = serializers.ListField(child=serializers.CharField(), required=False, write_only=True)
    options_data = OptionSerializer(source='options', many=True, read_only=True)

    # Read-only field to show exam title
    exam_title = serializers.CharField(source='exam.title', read_only=True)

    class Meta:
        model = Question
        fields = [
            'id', 'exam', 'exam_title', 'question_text', 'question_type',
            'points', 'order_number', 'correct_answer',
            'options', 'options_data'
        ]

    def validate(self, attrs):
        q_type = attrs.get('question_type', getattr(self.instance, 'question_type', Question.QuestionType.MCQ))
        correct = attrs.get('correct_answer', getattr(self.instance, 'correct_answer', ''))
        options = attrs.get('options')

        if q_type == Question.QuestionType.FILL_BLANK and not correct.strip():
            raise serializers.ValidationError({"correct_answer": "Fill-in-the-blank questions need a correct answer."})
        if q_type == Question.QuestionType.MCQ and options is not None:
            if not any(o.strip().lower() == correct.strip().lower() for o in options):
                raise serializers.ValidationError({"correct_answer": "One of the options must match the correct answer."})
        return attrs

    def _set_options(self, question, options_text, correct_ans):
        question.options.all().delete()
        for position, opt_text in enumerate(options_text, start=1):
            # Simple logic: if option text matches correct_answer, mark it true
            is_correct = (opt_text.strip().lower() == correct_ans.strip().lower())
            Option.objects.create(question=question, text=opt_text.strip(), is_correct=is_correct, order_number=position)

    def create(self, validated_data):
        options_text = validated_data.pop('options', [])
        question = Question.objects.create(**validated_data)

        # Handle MCQ Options
        if options_text:
            self._set_options(question, options_text, validated_data.get('correct_answer', ''))
        return question

    def update(self, instance, validated_data):
        options_text = validated_data.pop('options', None)
        question = super().update(instance, validated_data)
        if options_text is not None:
            self._set_options(question, options_text, question.correct_answer)
        return question

class StudentQuestionSerializer(serializers.ModelSerializer):
    """Question as shown while taking a test: no answers."""
    question_text = serializers.CharField(source='text', read_only=True)
    options = StudentOptionSerializer(many=True, read_only=True)

    class Meta:
        model = Question
        fields = ['id', 'question_text', 'question_type', 'points', 'order_number', 'options']

# --- Exam Serializers ---

class ExamSerializer(serializers.ModelSerializer):
    course_title = serializers.CharField(source='course.title', read_only=True)
    attachments = ExamAttachmentSerializer(many=True, read_only=True)

    # Read-only counts
    total_questions = serializers.IntegerField(source='questions.count', read_only=True)

    class Meta:
        model = Exam
        fields = [
            'id', 'title', 'description', 'course', 'course_title',
            'time_limit', 'attempt_limit', 'test_type',
            'attachments', 'total_questions', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_by', 'created_at', 'updated_at']

class ExamDetailSerializer(ExamSerializer):
    """Full view for admins, with questions and answers."""
    questions = QuestionSerializer(many=True, read_only=True)

    class Meta(ExamSerializer.Meta):
        fields = ExamSerializer.Meta.fields + ['questions']

class ExamListSerializer(serializers.ModelSerializer):
    """A test as listed for the student it is assigned to."""
    course_title = serializers.CharField(source='course.title', read_only=True)
    attachments = ExamAttachmentSerializer(many=True, read_only=True)
    question_count = serializers.IntegerField(source='questions.count', read_only=True)
    assignment = serializers.SerializerMethodField()
    attempts_used = serializers.SerializerMethodField()

    class Meta:
        model = Exam
        fields = [
            'id', 'title', 'description', 'course_title', 'time_limit', 'attempt_limit',
            'test_type', 'attachments', 'question_count', 'assignment', 'attempts_used'
        ]

    def _student(self):
        request = self.context.get('request')
        return request.user if request else None

    def get_assignment(self, obj):
        assignment = obj.assignments.filter(student=self._student()).first()
        if not assignment:
            return None
        return AssignmentSerializer(assignment).data

    def get_attempts_used(self, obj):
        from assessments.services import count_completed_attempts
        return count_completed_attempts(obj, self._student())

# --- Assignment Serializers ---

class AssignmentSerializer(serializers.ModelSerializer):
    student_email = serializers.CharField(source='student.email', read_only=True)

    class Meta:
        model = Assignment
        fields = ['id', 'exam', 'student', 'student_email', 'due_date', 'status']
        read_only_fields = ['exam']

class AssignStudentsSerializer(serializers.Serializer):
    students = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(role='student'), many=True, allow_empty=False
    )
    due_date = serializers.DateTimeField()
