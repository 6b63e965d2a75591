from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APITestCase

from .models import Feedback, Log

User = get_user_model()


class FeedbackTest(APITestCase):
    payload = {
        'rating': 4,
        'easeOfUse': 'Easy',
        'features': 'Timer is helpful',
        'performance': 'Fast',
        'recommendation': 'Yes',
        'comments': 'More listening tests please.',
    }

    def setUp(self):
        self.student = User.objects.create_user(
            username='student@example.com', email='student@example.com', password='pw-123456', full_name='Student'
        )
        self.admin = User.objects.create_user(
            username='admin@example.com', email='admin@example.com', password='pw-123456',
            full_name='Admin', role=User.Role.ADMIN,
        )

    def test_anonymous_feedback(self):
        response = self.client.post('/api/feedback', self.payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        feedback = Feedback.objects.get(id=response.data['id'])
        self.assertIsNone(feedback.user)
        self.assertEqual(feedback.ease_of_use, 'Easy')

    def test_feedback_attaches_logged_in_user(self):
        self.client.force_authenticate(self.student)
        self.client.post('/api/feedback', self.payload, format='json')
        self.assertEqual(Feedback.objects.get().user, self.student)

    def test_feedback_with_stale_cookie_is_accepted(self):
        self.client.cookies['payload-token'] = 'expired.or.forged'
        response = self.client.post('/api/feedback', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_rating_is_required(self):
        response = self.client.post('/api/feedback', {'comments': 'no rating'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('rating', response.data['error'])

    def test_rating_range(self):
        response = self.client.post('/api/feedback', dict(self.payload, rating=9), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_admins_read_feedback(self):
        Feedback.objects.create(rating=5)

        self.client.force_authenticate(self.student)
        self.assertEqual(self.client.get('/api/feedback').status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/feedback')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)


class LogListTest(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(
            username='admin@example.com', email='admin@example.com', password='pw-123456',
            full_name='Admin', role=User.Role.ADMIN,
        )
        Log.objects.create(user=self.admin, action='login')
        Log.objects.create(user=self.admin, action=Log.START_ATTEMPT, value={'testId': '1'})
        Log.objects.create(action=Log.SUBMIT_MOCK_ATTEMPT, value={'testId': '2'})

    def test_filter_by_action(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/logs', {'action': 'login'})

        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['user_email'], 'admin@example.com')

    def test_queryset_helpers(self):
        self.assertEqual(Log.objects.for_exam(1).count(), 1)
        self.assertEqual(Log.objects.mock_submissions().for_exam('2').count(), 1)
