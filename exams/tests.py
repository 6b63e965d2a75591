from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from cores.models import Log

from .models import Course, Exam, Assignment, Question

User = get_user_model()


def make_user(email, **extra):
    extra.setdefault('full_name', email.split('@')[0].title())
    return User.objects.create_user(username=email, email=email, password='s3cret-pass', **extra)


class CatalogueTest(APITestCase):
    def setUp(self):
        self.admin = make_user('admin@example.com', role=User.Role.ADMIN)
        self.student = make_user('student@example.com', level=2)
        self.course = Course.objects.create(title='Intermediate Grammar', level=2)
        self.other_course = Course.objects.create(title='Advanced Listening', level=5)
        self.assigned = Exam.objects.create(title='Grammar Check', course=self.course)
        self.unassigned = Exam.objects.create(title='Listening Final', course=self.other_course)
        Assignment.objects.create(
            exam=self.assigned, student=self.student, due_date=timezone.now() + timedelta(days=3)
        )

    def test_student_sees_only_assigned_tests(self):
        self.client.force_authenticate(self.student)
        response = self.client.get('/api/tests')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([t['title'] for t in response.data], ['Grammar Check'])
        self.assertEqual(response.data[0]['assignment']['status'], 'pending')
        self.assertEqual(response.data[0]['attempts_used'], 0)

    def test_student_cannot_open_unassigned_test(self):
        self.client.force_authenticate(self.student)
        response = self.client.get(f'/api/tests/{self.unassigned.id}')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_admin_sees_all_tests(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/tests')
        self.assertEqual(len(response.data), 2)

    def test_student_sees_courses_of_own_level(self):
        self.client.force_authenticate(self.student)
        response = self.client.get('/api/courses')
        self.assertEqual([c['title'] for c in response.data], ['Intermediate Grammar'])

    def test_students_cannot_create_tests(self):
        self.client.force_authenticate(self.student)
        response = self.client.post('/api/tests', {'title': 'Mine', 'course': self.course.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_creates_test(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/tests', {
            'title': 'Vocabulary', 'course': self.course.id, 'time_limit': 30, 'attempt_limit': 2,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        exam = Exam.objects.get(title='Vocabulary')
        self.assertEqual(exam.created_by, self.admin)
        self.assertEqual(exam.time_limit_seconds, 1800)

    def test_anonymous_is_rejected(self):
        response = self.client.get('/api/tests')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class AssignStudentsTest(APITestCase):
    def setUp(self):
        self.admin = make_user('admin@example.com', role=User.Role.ADMIN)
        self.student = make_user('one@example.com')
        self.second = make_user('two@example.com')
        self.exam = Exam.objects.create(title='Reading', course=Course.objects.create(title='Reading'))
        self.client.force_authenticate(self.admin)

    def test_assigns_students(self):
        due = timezone.now() + timedelta(days=7)
        response = self.client.post(f'/api/tests/{self.exam.id}/assign-students', {
            'students': [self.student.id, self.second.id], 'due_date': due.isoformat(),
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.exam.assignments.count(), 2)
        self.assertTrue(Log.objects.filter(action='assign-test').for_exam(self.exam.id).exists())

    def test_reassigning_moves_due_date(self):
        Assignment.objects.create(exam=self.exam, student=self.student, due_date=timezone.now())
        due = timezone.now() + timedelta(days=10)
        self.client.post(f'/api/tests/{self.exam.id}/assign-students', {
            'students': [self.student.id], 'due_date': due.isoformat(),
        }, format='json')

        assignment = Assignment.objects.get(exam=self.exam, student=self.student)
        self.assertFalse(assignment.is_overdue)
        self.assertEqual(self.exam.assignments.count(), 1)

    def test_admins_cannot_be_assigned(self):
        response = self.client.post(f'/api/tests/{self.exam.id}/assign-students', {
            'students': [self.admin.id], 'due_date': timezone.now().isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_lists_assignments(self):
        Assignment.objects.create(exam=self.exam, student=self.student, due_date=timezone.now())
        response = self.client.get(f'/api/tests/{self.exam.id}/assignments')
        self.assertEqual(response.data[0]['student_email'], 'one@example.com')


class QuestionApiTest(APITestCase):
    def setUp(self):
        self.admin = make_user('admin@example.com', role=User.Role.ADMIN)
        self.exam = Exam.objects.create(title='Grammar', course=Course.objects.create(title='Grammar'))
        self.client.force_authenticate(self.admin)

    def test_mcq_options_marked_from_correct_answer(self):
        response = self.client.post('/api/questions', {
            'exam': self.exam.id,
            'question_text': 'She ___ to school every day.',
            'question_type': 'mcq',
            'points': 2,
            'options': ['go', 'goes', 'going'],
            'correct_answer': 'goes',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        question = Question.objects.get(id=response.data['id'])
        self.assertEqual(question.options.count(), 3)
        self.assertEqual(question.correct_option.text, 'goes')

    def test_mcq_needs_matching_option(self):
        response = self.client.post('/api/questions', {
            'exam': self.exam.id,
            'question_text': 'Pick one',
            'question_type': 'mcq',
            'options': ['a', 'b'],
            'correct_answer': 'c',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_fill_blank_needs_answer(self):
        response = self.client.post('/api/questions', {
            'exam': self.exam.id,
            'question_text': 'The capital of France is ___.',
            'question_type': 'fill_blank',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_updating_options_replaces_them(self):
        question = Question.objects.create(exam=self.exam, text='Old', correct_answer='yes')
        question.options.create(text='yes', is_correct=True)

        response = self.client.patch(f'/api/questions/{question.id}', {
            'options': ['no', 'yes', 'maybe'],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(list(question.options.values_list('text', flat=True)), ['no', 'yes', 'maybe'])
        self.assertEqual(question.correct_option.text, 'yes')

    def test_filter_by_test(self):
        other = Exam.objects.create(title='Other', course=self.exam.course)
        Question.objects.create(exam=self.exam, text='Mine', question_type='fill_blank', correct_answer='x')
        Question.objects.create(exam=other, text='Theirs', question_type='fill_blank', correct_answer='y')

        response = self.client.get('/api/questions', {'test_id': self.exam.id})
        self.assertEqual([q['question_text'] for q in response.data], ['Mine'])

    def test_bulk_upload(self):
        csv_content = (
            'question_text,question_type,points,options,correct_answer\n'
            'I ___ a student.,mcq,1,am|is|are,am\n'
            'Past tense of go?,fill_blank,2,,went\n'
        )
        upload = SimpleUploadedFile('questions.csv', csv_content.encode('utf-8'), content_type='text/csv')

        response = self.client.post(
            '/api/questions/bulk-upload', {'file': upload, 'test_id': self.exam.id}, format='multipart'
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        questions = list(self.exam.questions.all())
        self.assertEqual(len(questions), 2)
        self.assertEqual(questions[0].correct_option.text, 'am')
        self.assertEqual(questions[1].points, 2)
        self.assertEqual(questions[1].order_number, 2)

    def test_bulk_upload_rejects_bad_rows_atomically(self):
        csv_content = (
            'question_text,question_type,points,options,correct_answer\n'
            'Fine question,fill_blank,1,,yes\n'
            'Broken,essay,1,,\n'
        )
        upload = SimpleUploadedFile('questions.csv', csv_content.encode('utf-8'), content_type='text/csv')

        response = self.client.post(
            '/api/questions/bulk-upload', {'file': upload, 'test_id': self.exam.id}, format='multipart'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Line 3', response.data['error'])
        self.assertEqual(self.exam.questions.count(), 0)

    def test_bulk_upload_requires_test(self):
        upload = SimpleUploadedFile('questions.csv', b'question_text\nHello\n', content_type='text/csv')
        response = self.client.post('/api/questions/bulk-upload', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
