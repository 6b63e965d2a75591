from django.test import TestCase, SimpleTestCase

from exams.models import Course, Exam, Question

from .grading import grade_submission, is_correct, lookup_answer, percentage


class PercentageTest(SimpleTestCase):
    def test_halves_round_up(self):
        # 1/8 = 12.5%, 5/8 = 62.5%
        self.assertEqual(percentage(1, 8), 13)
        self.assertEqual(percentage(5, 8), 63)

    def test_rounds_down_below_half(self):
        self.assertEqual(percentage(1, 3), 33)
        self.assertEqual(percentage(2, 3), 67)

    def test_nothing_gradable(self):
        self.assertEqual(percentage(0, 0), 0)

    def test_lookup_accepts_string_and_int_keys(self):
        self.assertEqual(lookup_answer({'4': 'a'}, 4), 'a')
        self.assertEqual(lookup_answer({4: 'b'}, 4), 'b')
        self.assertIsNone(lookup_answer({}, 4))


class GradingTest(TestCase):
    def setUp(self):
        course = Course.objects.create(title='Grammar')
        self.exam = Exam.objects.create(title='Grammar Check', course=course)

        self.mcq = Question.objects.create(
            exam=self.exam, text='I ___ happy.', question_type='mcq', points=2, order_number=1
        )
        self.wrong_option = self.mcq.options.create(text='is', order_number=1)
        self.right_option = self.mcq.options.create(text='am', is_correct=True, order_number=2)

        self.blank = Question.objects.create(
            exam=self.exam, text='Past tense of go: ___', question_type='fill_blank',
            correct_answer='went', order_number=2,
        )

    def questions(self):
        return list(self.exam.questions.prefetch_related('options'))

    def test_mcq_compares_option_id(self):
        self.assertTrue(is_correct(self.mcq, str(self.right_option.id)))
        self.assertTrue(is_correct(self.mcq, self.right_option.id))
        self.assertFalse(is_correct(self.mcq, str(self.wrong_option.id)))
        # The option text is not an answer
        self.assertFalse(is_correct(self.mcq, 'am'))

    def test_fill_blank_ignores_case_and_whitespace(self):
        self.assertTrue(is_correct(self.blank, '  WENT '))
        self.assertTrue(is_correct(self.blank, 'Went'))
        self.assertFalse(is_correct(self.blank, 'goed'))

    def test_empty_answers_are_wrong(self):
        self.assertFalse(is_correct(self.blank, ''))
        self.assertFalse(is_correct(self.blank, None))
        self.assertFalse(is_correct(self.mcq, '   '))

    def test_mcq_without_correct_option_is_never_right(self):
        orphan = Question.objects.create(exam=self.exam, text='?', question_type='mcq', order_number=3)
        option = orphan.options.create(text='a')
        self.assertFalse(is_correct(orphan, str(option.id)))

    def test_all_correct_mcq_scores_full_marks(self):
        self.blank.delete()
        result = grade_submission(self.questions(), {str(self.mcq.id): str(self.right_option.id)})

        self.assertEqual(result['score'], 100)
        self.assertEqual(result['correct_answers'], 1)

    def test_points_weight_the_score(self):
        # 2 of 3 possible points
        result = grade_submission(self.questions(), {
            str(self.mcq.id): str(self.right_option.id),
            str(self.blank.id): 'gone',
        })

        self.assertEqual(result['points_awarded'], 2)
        self.assertEqual(result['points_possible'], 3)
        self.assertEqual(result['score'], 67)

    def test_unanswered_questions_count_as_wrong(self):
        result = grade_submission(self.questions(), {str(self.blank.id): 'went'})

        self.assertEqual(result['score'], 33)
        self.assertEqual(result['total_questions'], 2)
        mcq_detail = result['details'][0]
        self.assertEqual(mcq_detail['questionId'], self.mcq.id)
        self.assertIsNone(mcq_detail['userAnswer'])
        self.assertFalse(mcq_detail['isCorrect'])
        self.assertEqual(mcq_detail['points'], 0)
        self.assertEqual(mcq_detail['maxPoints'], 2)

    def test_no_questions_scores_zero(self):
        result = grade_submission([], {'1': 'x'})
        self.assertEqual(result['score'], 0)
        self.assertEqual(result['details'], [])
