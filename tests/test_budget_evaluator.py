from __future__ import annotations

import unittest
from decimal import Decimal

from app.services.budget_evaluator import (
    BudgetRule,
    InvalidAggregateError,
    InvalidThresholdError,
    Status,
    classify,
    evaluate,
    is_upward,
    maybe_emit_alert,
    severity,
)


class ClassifyTests(unittest.TestCase):
    def test_boundaries_belong_to_higher_tier(self):
        self.assertEqual(classify(80, 80), Status.WARNING)
        self.assertEqual(classify(79.999, 80), Status.OK)
        self.assertEqual(classify(100, 80), Status.EXCEEDED)
        self.assertEqual(classify(99.999, 80), Status.WARNING)

    def test_no_upper_clamp(self):
        self.assertEqual(classify(250, 80), Status.EXCEEDED)

    def test_threshold_of_100_skips_warning(self):
        self.assertEqual(classify(99.9, 100), Status.OK)
        self.assertEqual(classify(100, 100), Status.EXCEEDED)

    def test_invalid_threshold_fails_loudly(self):
        for bad in (0, 101, -5, True, None, "80"):
            with self.assertRaises(InvalidThresholdError):
                classify(50, bad)

    def test_negative_percentage_rejected(self):
        with self.assertRaises(InvalidAggregateError):
            classify(-1, 80)

    def test_non_finite_percentage_rejected(self):
        for bad in (float("nan"), float("inf")):
            with self.assertRaises(InvalidAggregateError):
                classify(bad, 80)

    def test_fractional_threshold_rejected(self):
        with self.assertRaises(InvalidThresholdError):
            classify(50, 80.5)
        with self.assertRaises(InvalidThresholdError):
            evaluate(BudgetRule(period="monthly", amount=100, alert_threshold=79.9), 10)
        self.assertEqual(classify(80, 80.0), Status.WARNING)


class EvaluateTests(unittest.TestCase):
    def setUp(self):
        self.monthly = BudgetRule(period="monthly", amount=1000, alert_threshold=80)

    def test_warning_scenario(self):
        s = evaluate(self.monthly, 850)
        self.assertAlmostEqual(s.percentage, 85.0)
        self.assertEqual(s.status, Status.WARNING)
        self.assertAlmostEqual(s.remaining, 150.0)
        self.assertEqual(s.budget, 1000.0)
        self.assertEqual(s.alert_threshold, 80)

    def test_exceeded_at_exactly_the_limit(self):
        s = evaluate(self.monthly, 1000)
        self.assertEqual(s.status, Status.EXCEEDED)
        self.assertAlmostEqual(s.percentage, 100.0)
        self.assertAlmostEqual(s.remaining, 0.0)

    def test_remaining_is_unclamped_and_bar_is_clamped(self):
        s = evaluate(self.monthly, 1300)
        self.assertAlmostEqual(s.remaining, -300.0)
        self.assertAlmostEqual(s.percentage, 130.0)
        self.assertEqual(s.bar_percentage, 100.0)

    def test_percentage_matches_ratio(self):
        for amount, spent in ((500, 400), (3, 1), (123.45, 67.89), (0.5, 1000)):
            s = evaluate(BudgetRule(period="daily", amount=amount), spent)
            self.assertAlmostEqual(s.percentage, spent / amount * 100, places=6)

    def test_exact_threshold_hit_is_warning(self):
        s = evaluate(BudgetRule(period="monthly", amount=500, alert_threshold=80), 400)
        self.assertEqual(s.percentage, 80.0)
        self.assertEqual(s.status, Status.WARNING)

    def test_decimal_inputs(self):
        s = evaluate(BudgetRule(period="weekly", amount=Decimal("200.00")), Decimal("50.50"))
        self.assertAlmostEqual(s.percentage, 25.25)
        self.assertEqual(s.status, Status.OK)

    def test_zero_amount_without_spend_is_ok(self):
        s = evaluate(BudgetRule(period="monthly", amount=0), 0)
        self.assertEqual(s.percentage, 0.0)
        self.assertEqual(s.status, Status.OK)

    def test_zero_amount_with_spend_is_exceeded(self):
        s = evaluate(BudgetRule(period="monthly", amount=0), 5)
        self.assertEqual(s.status, Status.EXCEEDED)
        self.assertGreaterEqual(s.percentage, 100.0)

    def test_negative_spend_rejected(self):
        with self.assertRaises(InvalidAggregateError):
            evaluate(self.monthly, -0.01)

    def test_negative_or_non_finite_amount_rejected(self):
        for bad in (-10, float("nan"), float("inf"), "abc"):
            with self.assertRaises(InvalidAggregateError):
                evaluate(BudgetRule(period="monthly", amount=bad), 1)

    def test_invalid_threshold_rejected(self):
        with self.assertRaises(InvalidThresholdError):
            evaluate(BudgetRule(period="monthly", amount=100, alert_threshold=0), 10)

    def test_idempotent(self):
        self.assertEqual(evaluate(self.monthly, 812.5), evaluate(self.monthly, 812.5))

    def test_monotonic_in_spend(self):
        last = -1
        for spent in range(0, 1500, 25):
            level = severity(evaluate(self.monthly, spent).status)
            self.assertGreaterEqual(level, last)
            last = level


class MaybeEmitAlertTests(unittest.TestCase):
    def setUp(self):
        self.budget = BudgetRule(period="monthly", amount=500, alert_threshold=80, category=None)

    def test_warning_on_first_crossing(self):
        alert = maybe_emit_alert(Status.OK, Status.WARNING, self.budget, 400)
        self.assertIsNotNone(alert)
        assert alert is not None
        self.assertEqual(alert.alert_type, Status.WARNING)
        self.assertIn("400", alert.message)
        self.assertIn("500", alert.message)
        self.assertIn("warning", alert.message.lower())
        self.assertIn("monthly", alert.message.lower())
        self.assertIn("all spending", alert.message)
        self.assertEqual(alert.current_spent, 400.0)
        self.assertFalse(alert.is_read)

    def test_no_alert_without_transition(self):
        self.assertIsNone(maybe_emit_alert(Status.WARNING, Status.WARNING, self.budget, 420))
        self.assertIsNone(maybe_emit_alert("exceeded", "exceeded", self.budget, 600))
        self.assertIsNone(maybe_emit_alert("ok", "ok", self.budget, 10))

    def test_no_alert_on_downward_transition(self):
        self.assertIsNone(maybe_emit_alert(Status.EXCEEDED, Status.WARNING, self.budget, 450))
        self.assertIsNone(maybe_emit_alert(Status.WARNING, Status.OK, self.budget, 100))

    def test_exceeded_alerts_name_the_category(self):
        food = BudgetRule(period="weekly", amount=120, alert_threshold=75, category="Food")
        for previous in (Status.OK, Status.WARNING):
            alert = maybe_emit_alert(previous, Status.EXCEEDED, food, 150)
            assert alert is not None
            self.assertEqual(alert.alert_type, Status.EXCEEDED)
            self.assertIn("exceeded", alert.message.lower())
            self.assertIn("weekly", alert.message.lower())
            self.assertIn("Food", alert.message)
            self.assertIn("150", alert.message)
            self.assertIn("120", alert.message)

    def test_is_upward(self):
        self.assertTrue(is_upward("ok", "warning"))
        self.assertTrue(is_upward("ok", "exceeded"))
        self.assertTrue(is_upward("warning", "exceeded"))
        self.assertFalse(is_upward("exceeded", "ok"))


if __name__ == "__main__":
    unittest.main()
