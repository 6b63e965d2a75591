"""
Automatic grading for multiple-choice and fill-in-the-blank questions.

Answers are keyed by question id. Multiple-choice answers carry the id of the
selected option; fill-in-the-blank answers carry free text compared against
the stored correct answer, ignoring case and surrounding whitespace.
"""
from decimal import Decimal, ROUND_HALF_UP

from exams.models import Question


def _normalise(value):
    if value is None:
        return ''
    return str(value).strip()


def is_correct(question, answer):
    answer = _normalise(answer)
    if not answer:
        return False

    if question.question_type == Question.QuestionType.MCQ:
        correct_option = question.correct_option
        return correct_option is not None and answer == str(correct_option.id)

    if question.question_type == Question.QuestionType.FILL_BLANK:
        expected = _normalise(question.correct_answer)
        return bool(expected) and answer.lower() == expected.lower()

    return False


def percentage(awarded, possible):
    """Whole-number percentage, halves rounded up; 0 when nothing is gradable."""
    if possible <= 0:
        return 0
    ratio = Decimal(100) * Decimal(awarded) / Decimal(possible)
    return int(ratio.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def lookup_answer(answers, question_id):
    # JSON bodies key by string, ORM callers by int
    if question_id in answers:
        return answers[question_id]
    return answers.get(str(question_id))


def grade_submission(questions, answers):
    """
    Grade every question of a test against the submitted answers.

    Unanswered questions count as wrong but still add to the possible points.
    Returns a dict with the percentage `score`, the raw point totals and the
    per-question `details`.
    """
    awarded = 0
    possible = 0
    details = []

    for question in questions:
        answer = lookup_answer(answers, question.id)
        correct = is_correct(question, answer)
        points = question.points or 1

        possible += points
        if correct:
            awarded += points

        details.append({
            'questionId': question.id,
            'userAnswer': answer,
            'isCorrect': correct,
            'points': points if correct else 0,
            'maxPoints': points,
        })

    return {
        'score': percentage(awarded, possible),
        'points_awarded': awarded,
        'points_possible': possible,
        'total_questions': len(details),
        'correct_answers': sum(1 for d in details if d['isCorrect']),
        'details': details,
    }
