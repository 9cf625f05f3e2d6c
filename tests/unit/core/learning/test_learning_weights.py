"""
Unit tests for learning weights derived from hiring outcomes.
"""
import math
import unittest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import Mock

from core.learning.weights import (
    DEFAULT_WEIGHTS,
    LearningWeightEstimator,
    LearningWeights,
    Outcome,
    compute_learning_weights,
    is_successful,
    parse_outcome,
)


def record(outcome, skill=80, culture_fit=60, wellbeing=40, experience=20):
    return SimpleNamespace(
        outcome=outcome, skill=skill, culture_fit=culture_fit, wellbeing=wellbeing, experience=experience
    )


class TestOutcomes(unittest.TestCase):

    def test_parse_outcome(self):
        self.assertEqual(parse_outcome("HIRED"), Outcome.HIRED)
        self.assertIsNone(parse_outcome(None))
        self.assertIsNone(parse_outcome("ghosted"))

    def test_successful_outcomes(self):
        self.assertTrue(is_successful("hired"))
        self.assertTrue(is_successful("offered"))
        self.assertTrue(is_successful("interviewed"))
        self.assertFalse(is_successful("contacted"))
        self.assertFalse(is_successful("rejected"))
        self.assertFalse(is_successful(None))


class TestComputeLearningWeights(unittest.TestCase):

    def test_no_history_gives_defaults(self):
        weights = compute_learning_weights([])

        self.assertEqual(weights.as_dict(), DEFAULT_WEIGHTS)
        self.assertTrue(weights.is_default)

    def test_only_unsuccessful_outcomes_give_defaults(self):
        weights = compute_learning_weights([record("rejected"), record("contacted"), record(None)])

        self.assertEqual(weights.as_dict(), DEFAULT_WEIGHTS)
        self.assertEqual(weights.sample_size, 3)

    def test_weights_normalised_from_successful_averages(self):
        weights = compute_learning_weights([
            record("hired"),
            record("interviewed"),
            record("rejected", skill=0, culture_fit=100, wellbeing=100, experience=100),
        ])

        self.assertAlmostEqual(weights.skill, 0.4)
        self.assertAlmostEqual(weights.culture, 0.3)
        self.assertAlmostEqual(weights.wellbeing, 0.2)
        self.assertAlmostEqual(weights.experience, 0.1)
        self.assertEqual(weights.successful_samples, 2)
        self.assertAlmostEqual(math.fsum(weights.as_dict().values()), 1.0)

    def test_independent_of_record_order(self):
        records = [
            record("hired", 91, 13, 57, 33),
            record("offered", 17, 88, 21, 64),
            record("interviewed", 45, 45, 99, 3),
        ]
        self.assertEqual(
            compute_learning_weights(records).as_dict(),
            compute_learning_weights(list(reversed(records))).as_dict(),
        )

    def test_all_zero_scores_give_defaults(self):
        weights = compute_learning_weights([record("hired", 0, 0, 0, 0)])
        self.assertEqual(weights.as_dict(), DEFAULT_WEIGHTS)

    def test_outcome_bonus(self):
        weights = LearningWeights.default()

        self.assertEqual(weights.bonus_for("hired"), 1.2)
        self.assertEqual(weights.bonus_for("rejected"), 0.8)
        self.assertEqual(weights.bonus_for(None), 1.0)


class TestLearningWeightEstimator(unittest.TestCase):

    def test_uses_lookback_window(self):
        now = datetime(2026, 10, 1, tzinfo=timezone.utc)
        history_repo = Mock()
        history_repo.get_history_for_user.return_value = [record("hired")]
        estimator = LearningWeightEstimator(history_repo, default_lookback_days=30, clock=lambda: now)

        weights = estimator.estimate_weights("emp-1")

        history_repo.get_history_for_user.assert_called_once_with("emp-1", now - timedelta(days=30))
        self.assertFalse(weights.is_default)

    def test_explicit_lookback_overrides_default(self):
        now = datetime(2026, 10, 1, tzinfo=timezone.utc)
        history_repo = Mock()
        history_repo.get_history_for_user.return_value = []
        estimator = LearningWeightEstimator(history_repo, clock=lambda: now)

        estimator.estimate_weights("emp-1", lookback_days=7)

        history_repo.get_history_for_user.assert_called_once_with("emp-1", now - timedelta(days=7))


if __name__ == '__main__':
    unittest.main()
