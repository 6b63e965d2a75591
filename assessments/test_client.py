from unittest import mock

import requests
from django.test import SimpleTestCase

from .client import AttemptClient, AttemptClientError


def fake_response(status_code, payload=None):
    response = mock.Mock(status_code=status_code)
    response.json.return_value = payload or {}
    return response


@mock.patch('assessments.client.time.sleep')
class StartAttemptRetryTest(SimpleTestCase):
    def setUp(self):
        self.session = mock.Mock()
        self.client = AttemptClient('http://testserver/', session=self.session)

    def test_retries_server_errors(self, sleep):
        self.session.post.side_effect = [
            fake_response(500),
            fake_response(502),
            fake_response(201, {'id': 7, 'redirectUrl': '/tests/1/attempt/7'}),
        ]

        data = self.client.start_attempt(1)

        self.assertEqual(data['id'], 7)
        self.assertEqual(self.session.post.call_count, 3)
        sleep.assert_called_with(2)
        self.session.post.assert_called_with(
            'http://testserver/api/tests/1/start-attempt', allow_redirects=False, timeout=20
        )

    def test_gives_up_after_three_retries(self, sleep):
        self.session.post.return_value = fake_response(500, {'error': 'Internal server error'})

        with self.assertRaises(AttemptClientError) as ctx:
            self.client.start_attempt(1)

        self.assertEqual(self.session.post.call_count, 4)
        self.assertEqual(sleep.call_count, 3)
        self.assertEqual(ctx.exception.status_code, 500)

    def test_client_errors_are_not_retried(self, sleep):
        self.session.post.return_value = fake_response(400, {'error': 'The due date for this test has passed'})

        with self.assertRaises(AttemptClientError) as ctx:
            self.client.start_attempt(1)

        self.assertEqual(str(ctx.exception), 'The due date for this test has passed')
        self.assertEqual(self.session.post.call_count, 1)
        sleep.assert_not_called()

    def test_resumed_attempt_is_returned(self, sleep):
        self.session.post.return_value = fake_response(302, {'id': 3, 'redirectUrl': '/tests/1/attempt/3'})
        self.assertEqual(self.client.start_attempt(1)['id'], 3)

    def test_connection_errors_are_retried(self, sleep):
        self.session.post.side_effect = [
            requests.exceptions.ConnectionError('refused'),
            fake_response(201, {'id': 9}),
        ]
        self.assertEqual(self.client.start_attempt(1)['id'], 9)
        self.assertEqual(sleep.call_count, 1)


class SubmitTest(SimpleTestCase):
    def test_submit_posts_answers(self):
        session = mock.Mock()
        session.post.return_value = fake_response(200, {'score': 100})
        client = AttemptClient('http://testserver', session=session)

        result = client.submit_attempt(1, 7, {'3': '12'})

        self.assertEqual(result['score'], 100)
        session.post.assert_called_once_with(
            'http://testserver/api/tests/1/submit-attempt',
            json={'attemptId': 7, 'answers': {'3': '12'}},
            timeout=20,
        )

    def test_submit_error_message(self):
        session = mock.Mock()
        session.post.return_value = fake_response(403, {'error': 'This attempt does not belong to you'})
        client = AttemptClient('http://testserver', session=session)

        with self.assertRaises(AttemptClientError) as ctx:
            client.submit_attempt(1, 7, {})
        self.assertEqual(ctx.exception.status_code, 403)
