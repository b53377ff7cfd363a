import math
import unittest

from engines.evaluator import (
    DEFAULT_FAILURE_FEEDBACK,
    DEFAULT_SUCCESS_FEEDBACK,
    FAILURE_HINTS,
    SubmissionEvaluator,
)
from engines.models import Challenge, ChallengeType, DifficultyLevel, KeywordCriteria, parse_answer_key
from engines.settings import EngineSettings
from engines.validation import SubmissionValidationError


def _challenge(challenge_type, correct_answer, *, xp=10, minutes=2, explanation="Because."):
    return Challenge(
        id=1,
        type=challenge_type,
        difficulty=DifficultyLevel.BEGINNER,
        correct_answer=correct_answer,
        xp_reward=xp,
        estimated_time_minutes=minutes,
        explanation=explanation,
    )


class CheckAnswerTests(unittest.TestCase):
    def setUp(self):
        self.evaluator = SubmissionEvaluator()

    def test_structured_types_use_exact_equality(self):
        for challenge_type in (ChallengeType.LOGIC_PUZZLE, ChallengeType.DATA_LITERACY):
            challenge = _challenge(challenge_type, "B")
            self.assertTrue(self.evaluator.check_answer(challenge, "B"))
            self.assertFalse(self.evaluator.check_answer(challenge, "b"))
            self.assertFalse(self.evaluator.check_answer(challenge, "C"))

    def test_bias_swap_half_overlap_is_incorrect(self):
        challenge = _challenge(ChallengeType.BIAS_SWAP, frozenset({"a", "b", "d"}))
        self.assertFalse(self.evaluator.check_answer(challenge, {"a", "b", "c"}))

    def test_bias_swap_needs_similarity_above_threshold(self):
        challenge = _challenge(ChallengeType.BIAS_SWAP, frozenset({"a", "b", "c", "d"}))
        # 4/5 = 0.8 > 0.7
        self.assertTrue(self.evaluator.check_answer(challenge, ["a", "b", "c", "d", "e"]))
        # 3/4 = 0.75 > 0.7
        self.assertTrue(self.evaluator.check_answer(challenge, ["a", "b", "c"]))
        # 2/4 = 0.5
        self.assertFalse(self.evaluator.check_answer(challenge, ["a", "b"]))

    def test_bias_swap_empty_answer_is_incorrect(self):
        challenge = _challenge(ChallengeType.BIAS_SWAP, frozenset({"a"}))
        self.assertFalse(self.evaluator.check_answer(challenge, []))

    def test_bias_swap_threshold_is_configurable(self):
        lenient = SubmissionEvaluator(EngineSettings(bias_swap_threshold=0.4))
        challenge = _challenge(ChallengeType.BIAS_SWAP, frozenset({"a", "b", "d"}))
        self.assertTrue(lenient.check_answer(challenge, {"a", "b", "c"}))

    def test_free_text_word_count_boundary(self):
        for challenge_type in (
            ChallengeType.COUNTER_ARGUMENT,
            ChallengeType.SYNTHESIS,
            ChallengeType.ETHICAL_DILEMMA,
        ):
            challenge = _challenge(challenge_type, None)
            self.assertFalse(self.evaluator.check_answer(challenge, " ".join(["word"] * 49)))
            self.assertTrue(self.evaluator.check_answer(challenge, " ".join(["word"] * 50)))

    def test_free_text_keywords_are_case_insensitive(self):
        criteria = KeywordCriteria(keywords=("Evidence", "turnover", "demand"), min_keywords=2)
        challenge = _challenge(ChallengeType.COUNTER_ARGUMENT, criteria)
        self.assertTrue(self.evaluator.check_answer(challenge, "The EVIDENCE on TURNOVER is clear."))
        self.assertFalse(self.evaluator.check_answer(challenge, "Only evidence here."))

    def test_free_text_keywords_default_to_one_match(self):
        criteria = KeywordCriteria(keywords=("privacy",))
        challenge = _challenge(ChallengeType.ETHICAL_DILEMMA, criteria)
        self.assertTrue(self.evaluator.check_answer(challenge, "Privacy matters."))
        self.assertFalse(self.evaluator.check_answer(challenge, "Nothing relevant."))

    def test_zero_min_keywords_still_requires_a_match(self):
        criteria = parse_answer_key(ChallengeType.SYNTHESIS, {"keywords": ["evidence"], "minKeywords": 0})
        self.assertEqual(criteria.min_keywords, 1)
        challenge = _challenge(ChallengeType.SYNTHESIS, criteria)
        self.assertFalse(self.evaluator.check_answer(challenge, ""))
        self.assertFalse(self.evaluator.check_answer(challenge, "No keyword in sight."))
        self.assertTrue(self.evaluator.check_answer(challenge, "The evidence points one way."))

    def test_free_text_never_raises_on_odd_answers(self):
        challenge = _challenge(ChallengeType.SYNTHESIS, None)
        self.assertFalse(self.evaluator.check_answer(challenge, ""))
        self.assertFalse(self.evaluator.check_answer(challenge, {"unexpected": 1}))


class CalculateXPTests(unittest.TestCase):
    def setUp(self):
        self.evaluator = SubmissionEvaluator()

    def test_incorrect_answers_get_partial_credit(self):
        challenge = _challenge(ChallengeType.LOGIC_PUZZLE, "A", xp=25)
        self.assertEqual(self.evaluator.calculate_xp(challenge, False, 10), 7)

    def test_fast_correct_answer_gets_speed_bonus(self):
        challenge = _challenge(ChallengeType.LOGIC_PUZZLE, "A", xp=25, minutes=2)
        # half of 120 seconds is 60; 59 is strictly faster
        self.assertEqual(self.evaluator.calculate_xp(challenge, True, 59), 30)

    def test_speed_bonus_boundary_is_exclusive(self):
        challenge = _challenge(ChallengeType.LOGIC_PUZZLE, "A", xp=25, minutes=2)
        self.assertEqual(self.evaluator.calculate_xp(challenge, True, 60), 25)
        self.assertEqual(self.evaluator.calculate_xp(challenge, True, 600), 25)

    def test_bonus_is_floored(self):
        challenge = _challenge(ChallengeType.LOGIC_PUZZLE, "A", xp=13, minutes=5)
        self.assertEqual(self.evaluator.calculate_xp(challenge, True, 0), 15)
        self.assertEqual(self.evaluator.calculate_xp(challenge, False, 0), 3)

    def test_xp_always_within_bounds(self):
        for xp in range(1, 60):
            challenge = _challenge(ChallengeType.LOGIC_PUZZLE, "A", xp=xp, minutes=3)
            upper = math.ceil(1.2 * xp)
            for is_correct in (True, False):
                for seconds in (0, 30, 89, 90, 1000):
                    earned = self.evaluator.calculate_xp(challenge, is_correct, seconds)
                    self.assertGreaterEqual(earned, 0)
                    self.assertLessEqual(earned, upper)


class FeedbackTests(unittest.TestCase):
    def setUp(self):
        self.evaluator = SubmissionEvaluator()

    def test_success_returns_explanation(self):
        challenge = _challenge(ChallengeType.LOGIC_PUZZLE, "A", explanation="A follows.")
        self.assertEqual(self.evaluator.generate_feedback(challenge, "A", True), "A follows.")

    def test_success_without_explanation_uses_default(self):
        challenge = _challenge(ChallengeType.LOGIC_PUZZLE, "A", explanation=None)
        self.assertEqual(self.evaluator.generate_feedback(challenge, "A", True), DEFAULT_SUCCESS_FEEDBACK)

    def test_failure_appends_type_hint(self):
        challenge = _challenge(ChallengeType.BIAS_SWAP, frozenset({"a"}), explanation=None)
        feedback = self.evaluator.generate_feedback(challenge, {"b"}, False)
        self.assertTrue(feedback.startswith(DEFAULT_FAILURE_FEEDBACK))
        self.assertIn("loaded words", feedback)
        self.assertIn("logical flaws", FAILURE_HINTS[ChallengeType.LOGIC_PUZZLE])

    def test_feedback_is_deterministic(self):
        challenge = _challenge(ChallengeType.DATA_LITERACY, "A")
        first = self.evaluator.generate_feedback(challenge, "B", False)
        second = self.evaluator.generate_feedback(challenge, "B", False)
        self.assertEqual(first, second)


class EvaluateTests(unittest.TestCase):
    def setUp(self):
        self.evaluator = SubmissionEvaluator()

    def test_evaluate_bias_swap_list_answer(self):
        challenge = _challenge(ChallengeType.BIAS_SWAP, frozenset({"x", "y", "z"}), xp=20, minutes=5)
        result = self.evaluator.evaluate(challenge, ["x", "y", "z"], 30)
        self.assertEqual(result, {"is_correct": True, "xp_earned": 24, "feedback": "Because."})

    def test_bias_swap_rejects_plain_string(self):
        challenge = _challenge(ChallengeType.BIAS_SWAP, frozenset({"x"}))
        with self.assertRaises(SubmissionValidationError):
            self.evaluator.evaluate(challenge, "x", 10)

    def test_structured_rejects_list_answer(self):
        challenge = _challenge(ChallengeType.LOGIC_PUZZLE, "A")
        with self.assertRaises(SubmissionValidationError):
            self.evaluator.evaluate(challenge, ["A"], 10)

    def test_free_text_accepts_text_field(self):
        challenge = _challenge(ChallengeType.SYNTHESIS, KeywordCriteria(keywords=("both",)))
        result = self.evaluator.evaluate(challenge, {"text": "Both outlets agree."}, 100)
        self.assertTrue(result["is_correct"])

    def test_free_text_rejects_numbers(self):
        challenge = _challenge(ChallengeType.SYNTHESIS, None)
        with self.assertRaises(SubmissionValidationError):
            self.evaluator.evaluate(challenge, 42, 100)


if __name__ == "__main__":
    unittest.main()
