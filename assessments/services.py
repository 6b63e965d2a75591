"""
Attempt lifecycle: start, resume, answer, submit and time out.

Views call into these functions and let `AttemptError` subclasses propagate;
they are APIExceptions, so DRF turns them into JSON responses with the right
status code.
"""
import logging
import random

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from rest_framework import status
from rest_framework.exceptions import APIException

from cores.models import Log
from exams.models import Assignment, Question

from .grading import grade_submission, is_correct, lookup_answer
from .models import Attempt, AttemptResponse

logger = logging.getLogger(__name__)


class AttemptError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid attempt request.'
    default_code = 'attempt_error'


class AttemptForbidden(AttemptError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = 'attempt_forbidden'


class AttemptNotFound(AttemptError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = 'attempt_not_found'


def exam_questions(exam):
    return list(exam.questions.prefetch_related('options').order_by('order_number', 'id'))


def count_completed_attempts(exam, student):
    """Completed attempt records plus mock submissions kept in the logs."""
    recorded = Attempt.objects.filter(
        exam=exam, student=student, status=Attempt.Status.COMPLETED
    ).count()
    logged = Log.objects.mock_submissions().for_exam(exam.id).filter(user=student).count()
    return recorded + logged


def get_owned_attempt(user, exam_id, attempt_id, allow_admin=False, check_exam=True):
    """
    Load an attempt and make sure the caller may act on it through this URL.
    """
    try:
        attempt = Attempt.objects.select_related('exam', 'assignment').get(id=attempt_id)
    except (Attempt.DoesNotExist, ValueError):
        raise AttemptNotFound('Attempt not found')

    if attempt.student_id != user.id and not (allow_admin and user.is_staff):
        logger.warning(f"User {user.id} tried to access attempt {attempt.id} of user {attempt.student_id}")
        raise AttemptForbidden('This attempt does not belong to you')

    if check_exam and str(attempt.exam_id) != str(exam_id):
        raise AttemptError('This attempt is not for the specified test')

    return attempt


def _check_start_policy(exam, student):
    assignment = (
        Assignment.objects.select_for_update()
        .filter(exam=exam, student=student)
        .first()
    )
    if assignment is None:
        raise AttemptForbidden('This test is not assigned to you')
    if assignment.status == Assignment.Status.COMPLETED:
        raise AttemptError('This test has already been completed')
    if assignment.is_overdue:
        raise AttemptError('The due date for this test has passed')
    return assignment


def _check_attempt_limit(exam, student):
    used = count_completed_attempts(exam, student)
    if used >= exam.attempt_limit:
        logger.warning(f"Attempt limit reached for user {student.id} on test {exam.id} ({used}/{exam.attempt_limit})")
        raise AttemptError('You have reached the maximum number of attempts for this test')
    return used


@transaction.atomic
def start_attempt(exam, student):
    """
    Start a new attempt, or hand back the one already in progress.

    Returns `(attempt, created)`.
    """
    assignment = _check_start_policy(exam, student)

    in_progress = Attempt.objects.filter(
        exam=exam, student=student, status=Attempt.Status.IN_PROGRESS
    ).first()
    if in_progress:
        return in_progress, False

    _check_attempt_limit(exam, student)

    if assignment.status == Assignment.Status.PENDING:
        assignment.mark(Assignment.Status.IN_PROGRESS)

    attempt = Attempt.objects.create(
        exam=exam,
        student=student,
        assignment=assignment,
        attempt_number=Attempt.objects.filter(exam=exam, student=student).count() + 1,
    )
    Log.objects.create(
        user=student,
        action=Log.START_ATTEMPT,
        value={
            'testId': str(exam.id),
            'testName': exam.title,
            'attemptId': str(attempt.id),
            'studentId': str(student.id),
        },
    )
    logger.info(f"User {student.id} started attempt {attempt.id} on test {exam.id}")
    return attempt, True


@transaction.atomic
def start_mock_attempt(exam, student):
    """
    Start an attempt that lives only in the logs.

    Returns `(attempt_id, assignment)`.
    """
    assignment = _check_start_policy(exam, student)
    _check_attempt_limit(exam, student)

    if assignment.status == Assignment.Status.PENDING:
        assignment.mark(Assignment.Status.IN_PROGRESS)

    attempt_id = random.randint(1, 999999)
    Log.objects.create(
        user=student,
        action=Log.START_MOCK_ATTEMPT,
        value={
            'testId': str(exam.id),
            'testName': exam.title,
            'attemptId': str(attempt_id),
            'studentId': str(student.id),
            'assignmentId': str(assignment.id),
        },
    )
    logger.info(f"User {student.id} started mock attempt {attempt_id} on test {exam.id}")
    return attempt_id, assignment


def is_mock_attempt(exam, student, attempt_id):
    return (
        Log.objects.filter(action=Log.START_MOCK_ATTEMPT, user=student)
        .for_exam(exam.id)
        .filter(value__attemptId=str(attempt_id))
        .exists()
    )


def _store_answers(attempt, questions, answers):
    for question in questions:
        answer = lookup_answer(answers, question.id)
        if answer is None:
            continue
        correct = is_correct(question, answer)
        AttemptResponse.objects.update_or_create(
            attempt=attempt,
            question=question,
            defaults={
                'response': str(answer),
                'is_correct': correct,
                'points_awarded': question.points if correct else 0,
            },
        )


def _saved_answers(attempt):
    return {r.question_id: r.response for r in attempt.responses.all()}


def finish_attempt(attempt, final_status, questions=None):
    """
    Grade the saved responses and close the attempt with `final_status`.
    A completed attempt also completes its assignment.
    """
    if questions is None:
        questions = exam_questions(attempt.exam)

    result = grade_submission(questions, _saved_answers(attempt))

    # Refresh stored per-question grading so it matches the final result
    for detail in result['details']:
        AttemptResponse.objects.filter(
            attempt=attempt, question_id=detail['questionId']
        ).update(is_correct=detail['isCorrect'], points_awarded=detail['points'])

    attempt.status = final_status
    attempt.end_time = timezone.now()
    attempt.score = result['score']
    attempt.points_awarded = result['points_awarded']
    attempt.points_possible = result['points_possible']
    attempt.grading_details = result['details']
    attempt.save()

    if final_status == Attempt.Status.COMPLETED:
        attempt.assignment.mark(Assignment.Status.COMPLETED)

    logger.info(f"Attempt {attempt.id} finished as {final_status} with score {attempt.score}")
    return result


def ensure_in_progress(attempt):
    if not attempt.is_in_progress:
        raise AttemptError('This attempt is no longer in progress')


def lock_attempt(attempt):
    """Re-read the attempt under a row lock; call inside a transaction."""
    return Attempt.objects.select_for_update().select_related('exam', 'assignment').get(id=attempt.id)


def deadline_passed(attempt, now=None):
    grace = getattr(settings, 'ATTEMPT_GRACE_SECONDS', 0)
    return attempt.elapsed_seconds(now) > attempt.exam.time_limit_seconds + grace


def submit_attempt(attempt, answers=None):
    """
    Store any final answers, grade the attempt and mark it completed.

    Past the deadline the submitted answers are discarded: the attempt is
    timed out on its saved responses and the submission is rejected.
    """
    with transaction.atomic():
        attempt = lock_attempt(attempt)
        ensure_in_progress(attempt)

        expired = deadline_passed(attempt)
        if expired:
            finish_attempt(attempt, Attempt.Status.TIMED_OUT)
        else:
            questions = exam_questions(attempt.exam)
            if not questions:
                raise AttemptNotFound('No questions found for this test')

            if answers:
                _store_answers(attempt, questions, answers)

            result = finish_attempt(attempt, Attempt.Status.COMPLETED, questions)

    if expired:
        logger.warning(f"Late submission for attempt {attempt.id} rejected")
        raise AttemptError('The time limit for this attempt has expired')
    return attempt, result


@transaction.atomic
def submit_mock_attempt(exam, student, attempt_id, answers):
    """Grade a mock attempt and record the result in the logs."""
    already_submitted = (
        Log.objects.mock_submissions().for_exam(exam.id)
        .filter(user=student, value__attemptId=str(attempt_id))
        .exists()
    )
    if already_submitted:
        raise AttemptError('This attempt is no longer in progress')

    questions = exam_questions(exam)
    if not questions:
        raise AttemptNotFound('No questions found for this test')

    result = grade_submission(questions, answers or {})
    Log.objects.create(
        user=student,
        action=Log.SUBMIT_MOCK_ATTEMPT,
        value={
            'testId': str(exam.id),
            'testName': exam.title,
            'attemptId': str(attempt_id),
            'studentId': str(student.id),
            'score': result['score'],
            'gradingDetails': result['details'],
            'totalQuestions': result['total_questions'],
            'correctAnswers': result['correct_answers'],
        },
    )

    Assignment.objects.filter(exam=exam, student=student).update(status=Assignment.Status.COMPLETED)
    logger.info(f"User {student.id} submitted mock attempt {attempt_id} with score {result['score']}")
    return result


@transaction.atomic
def expire_attempt(attempt, reported_elapsed=None):
    """
    Time out an attempt that is still in progress.

    Returns `(attempt, result)`; `result` is None when the attempt had
    already ended.
    """
    attempt = lock_attempt(attempt)
    if not attempt.is_in_progress:
        return attempt, None

    if reported_elapsed is not None and reported_elapsed < attempt.exam.time_limit_seconds:
        raise AttemptError('The time limit for this attempt has not been reached')

    return attempt, finish_attempt(attempt, Attempt.Status.TIMED_OUT)


def save_response(attempt, question_id, response, time_spent=None):
    """
    Upsert the answer to one question, grading it immediately.

    Returns the stored response and the number of answered questions.
    """
    with transaction.atomic():
        attempt = lock_attempt(attempt)
        ensure_in_progress(attempt)

        expired = deadline_passed(attempt)
        if expired:
            finish_attempt(attempt, Attempt.Status.TIMED_OUT)
        else:
            try:
                question = attempt.exam.questions.prefetch_related('options').get(id=question_id)
            except (Question.DoesNotExist, ValueError):
                raise AttemptError('This question is not part of the test')

            correct = is_correct(question, response)
            defaults = {
                'response': '' if response is None else str(response),
                'is_correct': correct,
                'points_awarded': question.points if correct else 0,
            }
            if time_spent is not None:
                defaults['time_spent'] = time_spent

            saved, _ = AttemptResponse.objects.update_or_create(
                attempt=attempt, question=question, defaults=defaults
            )
            count = attempt.responses.count()

    if expired:
        raise AttemptError('The time limit for this attempt has expired')
    return saved, count


# Results are ordered by (submission time, source, id), newest first.
# Attempt records sort above mock submissions made at the same instant.
ATTEMPT_SOURCE = 'record'
MOCK_SOURCE = 'mock'


def make_cursor(submitted_at, source, pk):
    return f"{submitted_at.isoformat()}|{source}|{pk}"


def parse_cursor(raw):
    """
    Split a results cursor into `(submitted_at, source, pk)`.

    A bare ISO timestamp is accepted too and means "strictly older than".
    Raises ValueError on anything else.
    """
    timestamp, _, rest = raw.partition('|')
    submitted_at = parse_datetime(timestamp)
    if submitted_at is None:
        raise ValueError(f"Invalid cursor timestamp: {timestamp!r}")
    if not rest:
        return submitted_at, None, None

    source, _, pk = rest.partition('|')
    if source not in (ATTEMPT_SOURCE, MOCK_SOURCE):
        raise ValueError(f"Invalid cursor source: {source!r}")
    return submitted_at, source, int(pk)


def _after_cursor(field, source, cursor):
    """Filter for rows of `source` that sort after `cursor`."""
    submitted_at, cursor_source, pk = cursor
    older = Q(**{f'{field}__lt': submitted_at})
    same_time = Q(**{field: submitted_at})

    if cursor_source is None:
        return older
    if cursor_source == source:
        return older | (same_time & Q(id__lt=pk))
    if cursor_source == ATTEMPT_SOURCE:
        # Mocks at the cursor's instant come after the attempt it points at
        return older | same_time
    return older


def list_results(student, cursor=None, limit=10):
    """
    Finished attempts merged with mock submissions, newest first.

    `cursor` is a tuple from `parse_cursor` pointing at the last item already
    shown; returns `(items, next_cursor, has_more)`.
    """
    attempts = (
        Attempt.objects.filter(student=student)
        .exclude(status=Attempt.Status.IN_PROGRESS)
        .select_related('exam')
    )
    logs = Log.objects.mock_submissions().filter(user=student)
    if cursor is not None:
        attempts = attempts.filter(_after_cursor('end_time', ATTEMPT_SOURCE, cursor))
        logs = logs.filter(_after_cursor('timestamp', MOCK_SOURCE, cursor))

    # One extra row per source tells us whether another page exists
    rows = [
        ((attempt.end_time, ATTEMPT_SOURCE, attempt.id), {
            'id': str(attempt.id),
            'testId': str(attempt.exam_id),
            'testName': attempt.exam.title,
            'score': attempt.score or 0,
            'submittedAt': attempt.end_time,
            'status': attempt.status,
            'mock': False,
        })
        for attempt in attempts.order_by('-end_time', '-id')[:limit + 1]
    ]
    for log in logs.order_by('-timestamp', '-id')[:limit + 1]:
        value = log.value or {}
        rows.append(((log.timestamp, MOCK_SOURCE, log.id), {
            'id': value.get('attemptId') or str(log.id),
            'testId': value.get('testId', ''),
            'testName': value.get('testName', 'Mock Test'),
            'score': value.get('score', 0),
            'submittedAt': log.timestamp,
            'status': Attempt.Status.COMPLETED,
            'mock': True,
        }))

    rows.sort(key=lambda row: row[0], reverse=True)
    page = rows[:limit]
    next_cursor = make_cursor(*page[-1][0]) if page else None
    return [item for _, item in page], next_cursor, len(rows) > limit
