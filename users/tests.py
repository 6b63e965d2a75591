from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from cores.models import Log

User = get_user_model()


def make_user(email, password='s3cret-pass', **extra):
    extra.setdefault('full_name', email.split('@')[0].title())
    return User.objects.create_user(username=email, email=email, password=password, **extra)


class UserModelTest(TestCase):
    def test_admin_role_makes_staff(self):
        user = make_user('boss@example.com', role=User.Role.ADMIN)
        self.assertTrue(user.is_staff)
        self.assertTrue(user.is_admin)

    def test_superuser_becomes_admin(self):
        user = User.objects.create_superuser(
            username='root@example.com', email='root@example.com', password='x', full_name='Root'
        )
        self.assertEqual(user.role, User.Role.ADMIN)

    def test_demoted_admin_loses_staff(self):
        user = make_user('former@example.com', role=User.Role.ADMIN)
        user.role = User.Role.STUDENT
        user.save()

        user.refresh_from_db()
        self.assertFalse(user.is_staff)
        self.assertTrue(user.is_student)

    def test_superuser_stays_admin_and_staff(self):
        user = User.objects.create_superuser(
            username='root@example.com', email='root@example.com', password='x', full_name='Root'
        )
        user.role = User.Role.STUDENT
        user.save()

        self.assertEqual(user.role, User.Role.ADMIN)
        self.assertTrue(user.is_staff)

    def test_students_default_to_level_one(self):
        user = make_user('new@example.com')
        self.assertTrue(user.is_student)
        self.assertFalse(user.is_staff)
        self.assertEqual(user.level, 1)


class LoginTest(APITestCase):
    def setUp(self):
        self.user = make_user('student@example.com', full_name='Ada Student', level=3)

    def login(self, email='student@example.com', password='s3cret-pass'):
        return self.client.post('/api/auth/login', {'email': email, 'password': password}, format='json')

    def test_login_sets_http_only_cookie(self):
        response = self.login()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['user']['email'], 'student@example.com')
        self.assertEqual(response.data['user']['fullName'], 'Ada Student')
        self.assertEqual(response.data['user']['level'], 3)

        cookie = response.cookies['payload-token']
        self.assertTrue(cookie.value)
        self.assertTrue(cookie['httponly'])
        self.assertEqual(cookie['samesite'], 'Lax')
        self.assertEqual(cookie['max-age'], 7200)

    def test_login_is_case_insensitive_on_email(self):
        response = self.login(email='Student@Example.com')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_login_is_logged(self):
        self.login()
        self.assertTrue(Log.objects.filter(action='login', user=self.user).exists())

    def test_wrong_password(self):
        response = self.login(password='nope')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('error', response.data)
        self.assertNotIn('payload-token', response.cookies)

    def test_missing_fields(self):
        response = self.client.post('/api/auth/login', {'email': 'student@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_inactive_user_cannot_login(self):
        self.user.is_active = False
        self.user.save()
        response = self.login()
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_get_is_not_allowed(self):
        self.assertEqual(self.client.get('/api/auth/login').status_code, status.HTTP_405_METHOD_NOT_ALLOWED)
        self.assertEqual(self.client.get('/api/auth/logout').status_code, status.HTTP_405_METHOD_NOT_ALLOWED)

    def test_cookie_authenticates_me(self):
        self.login()
        response = self.client.get('/api/users/me')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['id'], self.user.id)
        self.assertEqual(response.data['data']['role'], 'student')

    def test_me_requires_login(self):
        response = self.client.get('/api/users/me')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_tampered_cookie_is_anonymous(self):
        self.client.cookies['payload-token'] = 'not-a-jwt'
        response = self.client.get('/api/users/me')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_logout_clears_cookie(self):
        self.login()
        response = self.client.post('/api/auth/logout')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.cookies['payload-token'].value, '')
        self.assertEqual(self.client.get('/api/users/me').status_code, status.HTTP_401_UNAUTHORIZED)


class UserAdminApiTest(APITestCase):
    def setUp(self):
        self.admin = make_user('admin@example.com', role=User.Role.ADMIN)
        self.student = make_user('kid@example.com')

    def test_students_cannot_manage_users(self):
        self.client.force_authenticate(self.student)
        response = self.client.get('/api/users')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_filter_by_role(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/users', {'role': 'student'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([u['email'] for u in response.data], ['kid@example.com'])

    def test_create_user_hashes_password_and_logs(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/users', {
            'email': 'fresh@example.com',
            'full_name': 'Fresh Student',
            'password': 'long-enough-pass',
            'level': 4,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(email='fresh@example.com')
        self.assertEqual(user.username, 'fresh@example.com')
        self.assertTrue(user.check_password('long-enough-pass'))
        self.assertTrue(Log.objects.filter(action='create-user', user=self.admin).exists())

    def test_demoting_admin_revokes_admin_access(self):
        other = make_user('deputy@example.com', role=User.Role.ADMIN)
        self.client.force_authenticate(self.admin)
        response = self.client.patch(f'/api/users/{other.id}', {'role': 'student'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        other.refresh_from_db()
        self.assertFalse(other.is_staff)

        self.client.force_authenticate(other)
        self.assertEqual(self.client.get('/api/users').status_code, status.HTTP_403_FORBIDDEN)

    def test_create_user_requires_password(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/users', {
            'email': 'nopass@example.com', 'full_name': 'No Pass',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class CreateAdminCommandTest(TestCase):
    def test_creates_first_admin(self):
        out = StringIO()
        call_command('create_admin', '--email', 'owner@example.com', '--password', 'pw-123456', stdout=out)

        user = User.objects.get(email='owner@example.com')
        self.assertTrue(user.is_superuser)
        self.assertEqual(user.role, User.Role.ADMIN)
        self.assertIn('Admin user created', out.getvalue())

    def test_skips_when_admin_exists(self):
        make_user('admin@example.com', role=User.Role.ADMIN)
        out = StringIO()
        call_command('create_admin', '--email', 'other@example.com', '--password', 'pw', stdout=out)

        self.assertFalse(User.objects.filter(email='other@example.com').exists())
        self.assertIn('already exists', out.getvalue())

    def test_rejects_taken_email(self):
        make_user('taken@example.com')
        with self.assertRaises(CommandError):
            call_command('create_admin', '--email', 'taken@example.com', '--password', 'pw', stdout=StringIO())
