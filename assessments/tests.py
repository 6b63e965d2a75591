from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from cores.models import Log
from exams.models import Course, Exam, Assignment, Question

from . import services
from .models import Attempt, AttemptResponse

User = get_user_model()


def make_user(email, **extra):
    extra.setdefault('full_name', email.split('@')[0].title())
    return User.objects.create_user(username=email, email=email, password='s3cret-pass', **extra)


class AttemptTestCase(APITestCase):
    def setUp(self):
        self.student = make_user('student@example.com')
        self.other = make_user('other@example.com')
        self.admin = make_user('admin@example.com', role=User.Role.ADMIN)

        self.course = Course.objects.create(title='Grammar')
        self.exam = Exam.objects.create(title='Grammar Check', course=self.course, time_limit=10, attempt_limit=2)

        self.mcq = Question.objects.create(exam=self.exam, text='I ___ happy.', question_type='mcq', order_number=1)
        self.wrong_option = self.mcq.options.create(text='is', order_number=1)
        self.right_option = self.mcq.options.create(text='am', is_correct=True, order_number=2)
        self.blank = Question.objects.create(
            exam=self.exam, text='Past tense of go: ___', question_type='fill_blank',
            correct_answer='went', order_number=2,
        )

        self.assignment = Assignment.objects.create(
            exam=self.exam, student=self.student, due_date=timezone.now() + timedelta(days=2)
        )
        self.client.force_authenticate(self.student)

    def start(self, exam=None):
        exam = exam or self.exam
        return self.client.post(f'/api/tests/{exam.id}/start-attempt')

    def make_attempt(self, student=None, exam=None, **fields):
        student = student or self.student
        exam = exam or self.exam
        assignment, _ = Assignment.objects.get_or_create(
            exam=exam, student=student, defaults={'due_date': timezone.now() + timedelta(days=2)}
        )
        return Attempt.objects.create(exam=exam, student=student, assignment=assignment, **fields)

    def attempt_url(self, attempt, suffix='', exam=None):
        exam_id = exam.id if exam else attempt.exam_id
        url = f'/api/tests/{exam_id}/attempt/{attempt.id}'
        return f'{url}/{suffix}' if suffix else url

    def full_marks(self):
        return {str(self.mcq.id): str(self.right_option.id), str(self.blank.id): ' Went '}


class StartAttemptTest(AttemptTestCase):
    def test_creates_attempt(self):
        response = self.start()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        attempt = Attempt.objects.get(student=self.student)
        self.assertEqual(response.data['id'], attempt.id)
        self.assertEqual(response.data['redirectUrl'], f'/tests/{self.exam.id}/attempt/{attempt.id}')
        self.assertEqual(response.data['status'], 'in_progress')
        self.assertEqual(response.data['attemptNumber'], 1)
        self.assertEqual(response.data['timeRemainingSeconds'], 600)

        self.assignment.refresh_from_db()
        self.assertEqual(self.assignment.status, Assignment.Status.IN_PROGRESS)
        self.assertTrue(
            Log.objects.filter(action=Log.START_ATTEMPT, user=self.student, value__attemptId=str(attempt.id)).exists()
        )

    def test_second_start_redirects_to_running_attempt(self):
        first = self.start()
        second = self.start()

        self.assertEqual(second.status_code, status.HTTP_302_FOUND)
        self.assertEqual(second['Location'], first.data['redirectUrl'])
        self.assertEqual(second.data['id'], first.data['id'])
        self.assertEqual(Attempt.objects.filter(student=self.student).count(), 1)

    def test_attempt_limit_counts_records_and_mock_submissions(self):
        self.make_attempt(status=Attempt.Status.COMPLETED, end_time=timezone.now())
        Log.objects.create(
            user=self.student, action=Log.SUBMIT_MOCK_ATTEMPT,
            value={'testId': str(self.exam.id), 'attemptId': '4242', 'score': 50},
        )

        response = self.start()

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('maximum number of attempts', response.data['error'])

    def test_timed_out_attempts_do_not_use_up_the_limit(self):
        self.exam.attempt_limit = 1
        self.exam.save()
        self.make_attempt(status=Attempt.Status.TIMED_OUT, end_time=timezone.now())

        response = self.start()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['attemptNumber'], 2)

    def test_overdue_assignment(self):
        self.assignment.due_date = timezone.now() - timedelta(minutes=1)
        self.assignment.save()

        response = self.start()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Attempt.objects.exists())

    def test_completed_assignment(self):
        self.assignment.mark(Assignment.Status.COMPLETED)
        response = self.start()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unassigned_student_is_forbidden(self):
        self.client.force_authenticate(self.other)
        response = self.start()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admins_do_not_take_tests(self):
        self.client.force_authenticate(self.admin)
        response = self.start()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'Only students can take tests')

    def test_anonymous(self):
        self.client.force_authenticate(None)
        self.assertEqual(self.start().status_code, status.HTTP_401_UNAUTHORIZED)

    def test_unknown_test(self):
        response = self.client.post('/api/tests/999999/start-attempt')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class SubmitAttemptTest(AttemptTestCase):
    def submit(self, data, exam=None):
        exam = exam or self.exam
        return self.client.post(f'/api/tests/{exam.id}/submit-attempt', data, format='json')

    def test_grades_and_completes(self):
        attempt_id = self.start().data['id']

        response = self.submit({'attemptId': attempt_id, 'answers': self.full_marks()})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['score'], 100)
        self.assertEqual(response.data['attemptId'], str(attempt_id))
        self.assertEqual(len(response.data['gradingDetails']), 2)

        attempt = Attempt.objects.get(id=attempt_id)
        self.assertEqual(attempt.status, Attempt.Status.COMPLETED)
        self.assertIsNotNone(attempt.end_time)
        self.assertEqual(attempt.points_awarded, 2)
        self.assertEqual(attempt.responses.filter(is_correct=True).count(), 2)

        self.assignment.refresh_from_db()
        self.assertEqual(self.assignment.status, Assignment.Status.COMPLETED)

    def test_partial_answers(self):
        attempt_id = self.start().data['id']
        response = self.submit({'attemptId': attempt_id, 'answers': {str(self.mcq.id): str(self.wrong_option.id)}})
        self.assertEqual(response.data['score'], 0)

    def test_missing_attempt_id(self):
        response = self.submit({'answers': {}})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_answers_must_be_a_mapping(self):
        attempt_id = self.start().data['id']
        response = self.submit({'attemptId': attempt_id, 'answers': ['a', 'b']})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_someone_elses_attempt(self):
        attempt = self.make_attempt(student=self.other)
        response = self.submit({'attemptId': attempt.id, 'answers': self.full_marks()})

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        attempt.refresh_from_db()
        self.assertTrue(attempt.is_in_progress)

    def test_attempt_for_another_test(self):
        other_exam = Exam.objects.create(title='Listening', course=self.course)
        attempt = self.make_attempt(exam=other_exam)

        response = self.submit({'attemptId': attempt.id, 'answers': {}})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_attempt(self):
        response = self.submit({'attemptId': 999999, 'answers': {}})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_test_without_questions(self):
        empty = Exam.objects.create(title='Empty', course=self.course)
        attempt = self.make_attempt(exam=empty)

        response = self.submit({'attemptId': attempt.id, 'answers': {}}, exam=empty)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_cannot_submit_twice(self):
        attempt_id = self.start().data['id']
        self.submit({'attemptId': attempt_id, 'answers': self.full_marks()})

        response = self.submit({'attemptId': attempt_id, 'answers': {}})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Attempt.objects.get(id=attempt_id).score, 100)

    def test_late_submission_is_rejected_and_times_out(self):
        attempt = self.make_attempt()
        AttemptResponse.objects.create(attempt=attempt, question=self.blank, response='went', is_correct=True)
        Attempt.objects.filter(id=attempt.id).update(start_time=timezone.now() - timedelta(hours=5))

        response = self.submit({'attemptId': attempt.id, 'answers': self.full_marks()})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('time limit', response.data['error'])
        attempt.refresh_from_db()
        self.assertEqual(attempt.status, Attempt.Status.TIMED_OUT)
        self.assertEqual(attempt.score, 50)
        self.assertFalse(attempt.responses.filter(question=self.mcq).exists())
        self.assignment.refresh_from_db()
        self.assertNotEqual(self.assignment.status, Assignment.Status.COMPLETED)

    def test_late_submission_without_saved_responses_scores_zero(self):
        attempt = self.make_attempt()
        Attempt.objects.filter(id=attempt.id).update(start_time=timezone.now() - timedelta(hours=5))

        response = self.submit({'attemptId': attempt.id, 'answers': self.full_marks()})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        attempt.refresh_from_db()
        self.assertEqual(attempt.status, Attempt.Status.TIMED_OUT)
        self.assertEqual(attempt.score, 0)


class AttemptRoutesTest(AttemptTestCase):
    def setUp(self):
        super().setUp()
        self.attempt = self.make_attempt()

    def save(self, question, answer, **extra):
        payload = {'questionId': question.id, 'response': answer}
        payload.update(extra)
        return self.client.post(self.attempt_url(self.attempt, 'response'), payload, format='json')

    def backdate(self, minutes, seconds=0):
        Attempt.objects.filter(id=self.attempt.id).update(
            start_time=timezone.now() - timedelta(minutes=minutes, seconds=seconds)
        )
        self.attempt.refresh_from_db()

    def test_detail_hides_answers(self):
        self.save(self.blank, 'went')
        response = self.client.get(self.attempt_url(self.attempt))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['questions']), 2)
        self.assertNotIn('is_correct', response.data['questions'][0]['options'][0])
        self.assertNotIn('correct_answer', response.data['questions'][1])
        self.assertEqual(response.data['responses'][0]['questionId'], self.blank.id)

    def test_detail_of_someone_elses_attempt(self):
        self.client.force_authenticate(self.other)
        response = self.client.get(self.attempt_url(self.attempt))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_save_response_upserts(self):
        first = self.save(self.mcq, str(self.wrong_option.id), timeSpent=12)
        second = self.save(self.mcq, str(self.right_option.id), timeSpent=20)

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(second.data['responseCount'], 1)
        saved = AttemptResponse.objects.get(attempt=self.attempt, question=self.mcq)
        self.assertTrue(saved.is_correct)
        self.assertEqual(saved.time_spent, 20)

    def test_save_response_requires_fields(self):
        response = self.client.post(self.attempt_url(self.attempt, 'response'), {'response': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_save_response_for_foreign_question(self):
        other_exam = Exam.objects.create(title='Listening', course=self.course)
        foreign = Question.objects.create(exam=other_exam, text='?', question_type='fill_blank', correct_answer='x')

        response = self.save(foreign, 'x')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_save_response_after_deadline_times_out(self):
        self.save(self.blank, 'went')
        self.backdate(minutes=11)

        response = self.save(self.mcq, str(self.right_option.id))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.attempt.refresh_from_db()
        self.assertEqual(self.attempt.status, Attempt.Status.TIMED_OUT)
        self.assertEqual(self.attempt.score, 50)

    def test_save_response_within_grace_period(self):
        self.backdate(minutes=10, seconds=5)
        response = self.save(self.blank, 'went')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_submit_saved_responses(self):
        self.save(self.mcq, str(self.right_option.id))
        response = self.client.post(self.attempt_url(self.attempt, 'submit'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['score'], 50)
        self.assignment.refresh_from_db()
        self.assertEqual(self.assignment.status, Assignment.Status.COMPLETED)

    def test_time_expired_before_limit_is_rejected(self):
        response = self.client.post(self.attempt_url(self.attempt, 'time-expired'), {'elapsedSeconds': 120}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.attempt.refresh_from_db()
        self.assertTrue(self.attempt.is_in_progress)

    def test_time_expired_grades_saved_responses(self):
        self.save(self.blank, 'WENT')
        response = self.client.post(self.attempt_url(self.attempt, 'time-expired'), {'elapsedSeconds': 600}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['score'], 50)

        self.attempt.refresh_from_db()
        self.assertEqual(self.attempt.status, Attempt.Status.TIMED_OUT)
        self.assertIsNotNone(self.attempt.end_time)
        self.assignment.refresh_from_db()
        self.assertNotEqual(self.assignment.status, Assignment.Status.COMPLETED)

    def test_time_expired_on_finished_attempt(self):
        Attempt.objects.filter(id=self.attempt.id).update(status=Attempt.Status.COMPLETED)
        response = self.client.post(self.attempt_url(self.attempt, 'time-expired'), {'elapsedSeconds': 600}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['status'], 'completed')

    def test_time_expired_wrong_test(self):
        other_exam = Exam.objects.create(title='Listening', course=self.course)
        url = self.attempt_url(self.attempt, 'time-expired', exam=other_exam)
        response = self.client.post(url, {'elapsedSeconds': 600}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_can_force_timeout(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(self.attempt_url(self.attempt, 'timeout'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.attempt.refresh_from_db()
        self.assertEqual(self.attempt.status, Attempt.Status.TIMED_OUT)

    def test_other_student_cannot_force_timeout(self):
        self.client.force_authenticate(self.other)
        response = self.client.post(self.attempt_url(self.attempt, 'timeout'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_demoted_admin_cannot_force_timeout(self):
        self.admin.role = User.Role.STUDENT
        self.admin.save()
        self.client.force_authenticate(self.admin)

        response = self.client.post(self.attempt_url(self.attempt, 'timeout'))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.attempt.refresh_from_db()
        self.assertTrue(self.attempt.is_in_progress)

    def test_expiring_a_stale_copy_keeps_the_submission(self):
        stale = Attempt.objects.get(id=self.attempt.id)
        services.submit_attempt(self.attempt, self.full_marks())

        attempt, result = services.expire_attempt(stale)

        self.assertIsNone(result)
        self.assertEqual(attempt.status, Attempt.Status.COMPLETED)
        self.attempt.refresh_from_db()
        self.assertEqual(self.attempt.status, Attempt.Status.COMPLETED)
        self.assertEqual(self.attempt.score, 100)
        self.assignment.refresh_from_db()
        self.assertEqual(self.assignment.status, Assignment.Status.COMPLETED)

    def test_saving_on_a_stale_copy_after_submit(self):
        stale = Attempt.objects.get(id=self.attempt.id)
        services.submit_attempt(self.attempt, {str(self.blank.id): 'went'})

        with self.assertRaises(services.AttemptError):
            services.save_response(stale, self.mcq.id, str(self.right_option.id))

        self.attempt.refresh_from_db()
        self.assertEqual(self.attempt.score, 50)
        self.assertFalse(self.attempt.responses.filter(question=self.mcq).exists())

    def test_submitting_a_stale_copy_after_timeout(self):
        stale = Attempt.objects.get(id=self.attempt.id)
        services.expire_attempt(self.attempt)

        with self.assertRaises(services.AttemptError):
            services.submit_attempt(stale, self.full_marks())

        self.attempt.refresh_from_db()
        self.assertEqual(self.attempt.status, Attempt.Status.TIMED_OUT)
        self.assertEqual(self.attempt.score, 0)

    def test_verify(self):
        response = self.client.get(self.attempt_url(self.attempt, 'verify'))
        self.assertTrue(response.data['match'])
        self.assertEqual(response.data['testId'], str(self.exam.id))

        other_exam = Exam.objects.create(title='Listening', course=self.course)
        response = self.client.get(self.attempt_url(self.attempt, 'verify', exam=other_exam))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['match'])

    def test_verify_unknown_attempt(self):
        response = self.client.get(f'/api/tests/{self.exam.id}/attempt/999999/verify')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ResultsTest(AttemptTestCase):
    def setUp(self):
        super().setUp()
        now = timezone.now().replace(microsecond=0)
        self.newest = self.make_attempt(status=Attempt.Status.COMPLETED, score=90, end_time=now - timedelta(hours=1))
        self.middle = self.make_attempt(status=Attempt.Status.TIMED_OUT, score=40, end_time=now - timedelta(hours=2))
        self.oldest = self.make_attempt(status=Attempt.Status.COMPLETED, score=70, end_time=now - timedelta(hours=3))
        self.running = self.make_attempt()
        Log.objects.create(
            user=self.student, action=Log.SUBMIT_MOCK_ATTEMPT, timestamp=now - timedelta(minutes=90),
            value={'testId': str(self.exam.id), 'testName': 'Grammar Check', 'attemptId': '777', 'score': 80},
        )
        self.make_attempt(student=self.other, status=Attempt.Status.COMPLETED, score=10, end_time=now)

    def test_pages_newest_first(self):
        first = self.client.get('/api/results', {'limit': 2}).json()

        self.assertEqual([item['id'] for item in first['data']], [str(self.newest.id), '777'])
        self.assertTrue(first['data'][1]['mock'])
        self.assertTrue(first['hasMore'])

        second = self.client.get('/api/results', {'limit': 2, 'cursor': first['nextCursor']}).json()

        self.assertEqual([item['id'] for item in second['data']], [str(self.middle.id), str(self.oldest.id)])
        self.assertEqual(second['data'][0]['status'], 'timed_out')
        self.assertFalse(second['hasMore'])

    def test_paging_keeps_results_sharing_a_timestamp(self):
        tie = self.newest.end_time + timedelta(minutes=30)
        first = self.make_attempt(status=Attempt.Status.COMPLETED, score=60, end_time=tie)
        second = self.make_attempt(status=Attempt.Status.COMPLETED, score=65, end_time=tie)
        Log.objects.create(
            user=self.student, action=Log.SUBMIT_MOCK_ATTEMPT, timestamp=tie,
            value={'testId': str(self.exam.id), 'attemptId': '888', 'score': 20},
        )

        seen, cursor = [], None
        for _ in range(10):
            params = {'limit': 1}
            if cursor:
                params['cursor'] = cursor
            page = self.client.get('/api/results', params).json()
            seen.extend(item['id'] for item in page['data'])
            cursor = page['nextCursor']
            if not page['hasMore']:
                break

        self.assertEqual(seen, [
            str(second.id), str(first.id), '888',
            str(self.newest.id), '777', str(self.middle.id), str(self.oldest.id),
        ])

    def test_bad_cursor(self):
        response = self.client.get('/api/results', {'cursor': 'yesterday'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        now = timezone.now().isoformat()
        response = self.client.get('/api/results', {'cursor': f'{now}|elsewhere|1'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_result_detail(self):
        response = self.client.get(f'/api/results/{self.newest.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['score'], 90)

    def test_running_attempt_has_no_result(self):
        response = self.client.get(f'/api/results/{self.running.id}')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_cannot_read_others_results(self):
        self.client.force_authenticate(self.other)
        response = self.client.get(f'/api/results/{self.newest.id}')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_admin_reads_any_result_until_demoted(self):
        self.client.force_authenticate(self.admin)
        self.assertEqual(self.client.get(f'/api/results/{self.newest.id}').status_code, status.HTTP_200_OK)

        self.admin.role = User.Role.STUDENT
        self.admin.save()
        response = self.client.get(f'/api/results/{self.newest.id}')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


@override_settings(MOCK_ATTEMPTS=True)
class MockAttemptTest(AttemptTestCase):
    def test_start_and_submit(self):
        start = self.start()

        self.assertEqual(start.status_code, status.HTTP_302_FOUND)
        attempt_id = start.data['attemptId']
        self.assertIn(f'/tests/{self.exam.id}/mock-attempt/{attempt_id}', start['Location'])
        self.assertFalse(Attempt.objects.exists())
        self.assertTrue(Log.objects.filter(action=Log.START_MOCK_ATTEMPT, value__attemptId=attempt_id).exists())

        response = self.client.post(f'/api/tests/{self.exam.id}/submit-attempt', {
            'attemptId': attempt_id, 'answers': self.full_marks(),
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['score'], 100)
        log = Log.objects.mock_submissions().get(user=self.student)
        self.assertEqual(log.value['correctAnswers'], 2)
        self.assertEqual(log.value['totalQuestions'], 2)

        self.assignment.refresh_from_db()
        self.assertEqual(self.assignment.status, Assignment.Status.COMPLETED)

    def test_mock_submission_cannot_repeat(self):
        attempt_id = self.start().data['attemptId']
        url = f'/api/tests/{self.exam.id}/submit-attempt'
        self.client.post(url, {'attemptId': attempt_id, 'answers': {}}, format='json')

        response = self.client.post(url, {'attemptId': attempt_id, 'answers': {}}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mock_start_still_checks_assignment(self):
        self.client.force_authenticate(self.other)
        self.assertEqual(self.start().status_code, status.HTTP_403_FORBIDDEN)
