"""
Small HTTP client for the attempt API, used by scripts and integration checks.

Starting an attempt is retried a few times on server errors, the same way the
browser's "Start test" button does; every other failure surfaces at once.
"""
import logging
import time

import requests

logger = logging.getLogger(__name__)

START_RETRIES = 3
RETRY_DELAY_SECONDS = 2


class AttemptClientError(Exception):
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class AttemptClient:
    def __init__(self, base_url, session=None, timeout=20, retry_delay=RETRY_DELAY_SECONDS):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout
        self.retry_delay = retry_delay

    def _url(self, path):
        return f"{self.base_url}{path}"

    def _error(self, resp, fallback):
        try:
            message = resp.json().get('error') or fallback
        except ValueError:
            message = fallback
        return AttemptClientError(message, status_code=resp.status_code)

    def login(self, email, password):
        resp = self.session.post(
            self._url('/api/auth/login'),
            json={'email': email, 'password': password},
            timeout=self.timeout,
        )
        if resp.status_code != 200:
            raise self._error(resp, 'Invalid email or password')
        # The session keeps the auth cookie for later calls
        return resp.json()['user']

    def start_attempt(self, test_id):
        """
        Start or resume an attempt. Returns the attempt payload, which carries
        `redirectUrl` pointing at the attempt page.
        """
        url = self._url(f'/api/tests/{test_id}/start-attempt')
        retries = 0

        while True:
            try:
                resp = self.session.post(url, allow_redirects=False, timeout=self.timeout)
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                if retries < START_RETRIES:
                    retries += 1
                    logger.warning(f"Start attempt failed ({e}). Retrying ({retries}/{START_RETRIES})...")
                    time.sleep(self.retry_delay)
                    continue
                raise AttemptClientError(f"Could not reach the server: {e}")

            if resp.status_code in (200, 201, 302):
                return resp.json()

            if resp.status_code >= 500 and retries < START_RETRIES:
                retries += 1
                logger.warning(f"Server error {resp.status_code} starting test {test_id}. Retrying ({retries}/{START_RETRIES})...")
                time.sleep(self.retry_delay)
                continue

            raise self._error(resp, 'Failed to start test attempt')

    def save_response(self, test_id, attempt_id, question_id, response, time_spent=0):
        resp = self.session.post(
            self._url(f'/api/tests/{test_id}/attempt/{attempt_id}/response'),
            json={'questionId': question_id, 'response': response, 'timeSpent': time_spent},
            timeout=self.timeout,
        )
        if resp.status_code != 200:
            raise self._error(resp, 'Failed to save response')
        return resp.json()

    def submit_attempt(self, test_id, attempt_id, answers):
        resp = self.session.post(
            self._url(f'/api/tests/{test_id}/submit-attempt'),
            json={'attemptId': attempt_id, 'answers': answers},
            timeout=self.timeout,
        )
        if resp.status_code != 200:
            raise self._error(resp, 'Failed to submit test')
        return resp.json()
