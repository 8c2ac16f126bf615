import unittest
from types import SimpleNamespace

from core import MAX_EASE_FACTOR, MAX_INTERVAL_DAYS, AppSettings, ReviewItem
from core.clock import ONE_DAY_MS, FixedClock
from scheduler.sm2 import (
    InitialState,
    PrioritySM2Scheduler,
    ReviewResult,
    compute_initial_state,
    compute_next_state,
    priority_multiplier,
    round_half_up,
)


NOW = 1_700_000_000_000


def make_item(**overrides) -> ReviewItem:
    fields = dict(
        id="test1",
        type="note",
        content="Test",
        added_date=NOW - 5 * ONE_DAY_MS,
        next_review_date=NOW,
        interval=5,
        ease_factor=2.5,
        priority=3,
        last_reviewed_date=NOW - 5 * ONE_DAY_MS,
    )
    fields.update(overrides)
    return ReviewItem(**fields)


class TestInitialState(unittest.TestCase):
    """Tests for the first schedule of a new item."""

    def test_default_settings(self):
        """Fresh item gets interval 1, ease 2.5 and is due in one day."""
        state = compute_initial_state(AppSettings(initial_review_days=1), now=NOW)

        self.assertIsInstance(state, InitialState)
        self.assertEqual(state.interval, 1)
        self.assertEqual(state.ease_factor, 2.5)
        self.assertEqual(state.next_review_date, NOW + ONE_DAY_MS)

    def test_custom_initial_days(self):
        """The first interval comes from the settings."""
        state = compute_initial_state(AppSettings(initial_review_days=3), now=NOW)

        self.assertEqual(state.interval, 3)
        self.assertEqual(state.next_review_date, NOW + 3 * ONE_DAY_MS)

    def test_priority_does_not_change_first_interval(self):
        """Priority 1 and priority 5 get the same first schedule."""
        for days in (1, 2, 7):
            settings = AppSettings(initial_review_days=days)
            states = {compute_initial_state(settings, priority, now=NOW) for priority in range(1, 6)}
            self.assertEqual(len(states), 1)
            self.assertEqual(states.pop().interval, days)

    def test_uses_clock_when_now_omitted(self):
        """The current time is read from the given clock."""
        state = compute_initial_state(AppSettings(), clock=FixedClock(NOW))
        self.assertEqual(state.next_review_date, NOW + ONE_DAY_MS)


class TestNextState(unittest.TestCase):
    """Tests for rescheduling after a review."""

    def setUp(self):
        self.settings = AppSettings(initial_review_days=1)

    def test_subsequent_review_default_priority(self):
        """5 * 2.5 * 1.0 = 12.5 rounds half up to 13."""
        result = compute_next_state(make_item(), self.settings, 3, now=NOW)

        self.assertIsInstance(result, ReviewResult)
        self.assertEqual(result.next_interval, 13)
        self.assertEqual(result.next_review_date, NOW + 13 * ONE_DAY_MS)

    def test_high_priority_grows_slower(self):
        """P1 multiplier 0.9: 5 * 2.5 * 0.9 = 11.25 -> 11."""
        result = compute_next_state(make_item(priority=1), self.settings, 3, now=NOW)
        self.assertEqual(result.next_interval, 11)
        self.assertEqual(result.next_review_date, NOW + 11 * ONE_DAY_MS)

    def test_low_priority_grows_faster(self):
        """P5 multiplier 1.1: 5 * 2.5 * 1.1 = 13.75 -> 14."""
        result = compute_next_state(make_item(priority=5), self.settings, 3, now=NOW)
        self.assertEqual(result.next_interval, 14)

    def test_priority_effect_is_monotonic(self):
        """For equal interval, ease and quality: P1 <= P3 <= P5."""
        for interval in (2, 3, 5, 8, 21, 60):
            for ease in (1.3, 1.7, 2.5, 3.1):
                for quality in (3, 4, 5):
                    results = [
                        compute_next_state(
                            make_item(interval=interval, ease_factor=ease, priority=priority),
                            self.settings, quality, now=NOW,
                        ).next_interval
                        for priority in (1, 3, 5)
                    ]
                    self.assertLessEqual(results[0], results[1])
                    self.assertLessEqual(results[1], results[2])

    def test_first_review_perfect_recall(self):
        """Never reviewed, interval at baseline, quality 5 -> 1 * 4 = 4 days."""
        item = make_item(interval=1, last_reviewed_date=None)
        result = compute_next_state(item, self.settings, 5, now=NOW)

        self.assertEqual(result.next_interval, 4)
        self.assertEqual(result.next_review_date, NOW + 4 * ONE_DAY_MS)

    def test_first_review_good_recall(self):
        """Quality 3 or 4 on a first review: 1 * 2.5 = 2.5 -> 3 days."""
        item = make_item(interval=1, last_reviewed_date=None)
        for quality in (3, 4):
            self.assertEqual(compute_next_state(item, self.settings, quality, now=NOW).next_interval, 3)

    def test_first_review_scales_with_initial_days(self):
        """The first-review jump multiplies the settings baseline."""
        settings = AppSettings(initial_review_days=3)
        item = make_item(interval=3, last_reviewed_date=None)

        self.assertEqual(compute_next_state(item, settings, 5, now=NOW).next_interval, 12)
        self.assertEqual(compute_next_state(item, settings, 4, now=NOW).next_interval, 8)

    def test_reviewed_item_at_baseline_uses_growth_formula(self):
        """A reviewed item never re-enters the first-review formula."""
        item = make_item(interval=1, ease_factor=2.0)
        result = compute_next_state(item, self.settings, 5, now=NOW)

        self.assertEqual(result.next_interval, 2)

    def test_never_reviewed_above_baseline_uses_growth_formula(self):
        """Interval above the baseline selects the growth formula even without a review."""
        item = make_item(interval=5, last_reviewed_date=None)
        self.assertEqual(compute_next_state(item, self.settings, 3, now=NOW).next_interval, 13)

    def test_failed_recall_resets_interval(self):
        """Quality below 3 resets to the baseline interval."""
        for quality in (0, 1, 2):
            result = compute_next_state(make_item(interval=30), AppSettings(initial_review_days=2), quality, now=NOW)
            self.assertEqual(result.next_interval, 2)
            self.assertEqual(result.next_review_date, NOW + 2 * ONE_DAY_MS)

    def test_failed_recall_lowers_ease(self):
        """Failed recall ease is max(1.3, e - 0.2)."""
        for ease in (1.3, 1.4, 1.5, 1.85, 2.5, 3.0):
            for quality in (0, 1, 2, 2.5):
                result = compute_next_state(make_item(ease_factor=ease), self.settings, quality, now=NOW)
                self.assertAlmostEqual(result.next_ease_factor, max(1.3, ease - 0.2), places=9)

    def test_ease_adjustment_on_success(self):
        """SM-2 ease update: q3 -> -0.14, q4 -> 0, q5 -> +0.1."""
        item = make_item()
        self.assertEqual(compute_next_state(item, self.settings, 3, now=NOW).next_ease_factor, 2.36)
        self.assertEqual(compute_next_state(item, self.settings, 4, now=NOW).next_ease_factor, 2.5)
        self.assertEqual(compute_next_state(item, self.settings, 5, now=NOW).next_ease_factor, 2.6)

    def test_ease_never_below_minimum(self):
        """Ease factor is floored at 1.3 on success too."""
        result = compute_next_state(make_item(ease_factor=1.3), self.settings, 3, now=NOW)
        self.assertEqual(result.next_ease_factor, 1.3)

    def test_interval_is_at_least_one_day(self):
        """The next interval is never below one day."""
        for interval in (None, 0, 0.2, 1, 2, 50):
            for ease in (None, 0.5, 1.3, 2.5):
                for quality in (0, 2, 3, 4, 5):
                    item = SimpleNamespace(id="x", interval=interval, ease_factor=ease, priority=1)
                    result = compute_next_state(item, self.settings, quality, now=NOW)
                    self.assertGreaterEqual(result.next_interval, 1)

    def test_missing_fields_use_defaults(self):
        """Missing interval, ease and priority fall back to 1, 2.5 and 3."""
        item = SimpleNamespace(id="min")
        result = compute_next_state(item, self.settings, 3, now=NOW)

        self.assertEqual(result.next_interval, 3)
        self.assertEqual(result.next_ease_factor, 2.36)
        self.assertEqual(result.next_review_date, NOW + 3 * ONE_DAY_MS)

    def test_malformed_numbers_do_not_raise(self):
        """Non-numeric and NaN fields behave like missing ones."""
        item = SimpleNamespace(id="bad", interval="abc", ease_factor=float("nan"), priority=None)
        result = compute_next_state(item, self.settings, 3, now=NOW)

        self.assertEqual(result.next_interval, 3)
        self.assertEqual(result.next_ease_factor, 2.36)

    def test_huge_ease_factor_is_capped(self):
        """An ease far above the model's range is read as the maximum."""
        item = SimpleNamespace(id="big", interval=5, ease_factor=1e308, priority=3, last_reviewed_date=1)
        result = compute_next_state(item, self.settings, 3, now=NOW)

        self.assertEqual(result.next_interval, 500)
        self.assertEqual(result.next_ease_factor, round(MAX_EASE_FACTOR - 0.14, 2))

    def test_out_of_range_numbers_stay_finite(self):
        """Extreme intervals and priorities give a bounded schedule."""
        item = SimpleNamespace(id="far", interval=1e308, ease_factor=2.5, priority=1e308, last_reviewed_date=1)
        result = compute_next_state(item, self.settings, 5, now=NOW)

        self.assertEqual(result.next_interval, MAX_INTERVAL_DAYS)
        self.assertEqual(result.next_review_date, NOW + MAX_INTERVAL_DAYS * ONE_DAY_MS)

        item = SimpleNamespace(id="neg", interval=5, ease_factor=-1e308, priority=3, last_reviewed_date=1)
        result = compute_next_state(item, self.settings, 3, now=NOW)
        self.assertEqual(result.next_interval, 1)
        self.assertEqual(result.next_ease_factor, 1.3)

    def test_quality_is_clamped(self):
        """Quality above 5 counts as 5, missing quality counts as 3."""
        item = make_item()
        self.assertEqual(
            compute_next_state(item, self.settings, 9, now=NOW),
            compute_next_state(item, self.settings, 5, now=NOW),
        )
        self.assertEqual(
            compute_next_state(item, self.settings, None, now=NOW),
            compute_next_state(item, self.settings, 3, now=NOW),
        )

    def test_missing_initial_days_defaults_to_one(self):
        """Settings without a usable baseline behave like initial_review_days=1."""
        settings = SimpleNamespace(initial_review_days=0)
        item = make_item(interval=1, last_reviewed_date=None)
        self.assertEqual(compute_next_state(item, settings, 5, now=NOW).next_interval, 4)

    def test_scheduler_object_uses_its_clock(self):
        """PrioritySM2Scheduler reads the time from its clock."""
        scheduler = PrioritySM2Scheduler(FixedClock(NOW))
        result = scheduler.next_state(make_item(), self.settings, 3)
        self.assertEqual(result.next_review_date, NOW + 13 * ONE_DAY_MS)
        self.assertEqual(scheduler.initial_state(self.settings).next_review_date, NOW + ONE_DAY_MS)


class TestHelpers(unittest.TestCase):

    def test_round_half_up(self):
        """Halves round up, unlike the built-in round."""
        self.assertEqual(round_half_up(12.5), 13)
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(11.25), 11)
        self.assertEqual(round_half_up(0.49), 0)

    def test_priority_multiplier(self):
        self.assertAlmostEqual(priority_multiplier(1), 0.9)
        self.assertAlmostEqual(priority_multiplier(3), 1.0)
        self.assertAlmostEqual(priority_multiplier(5), 1.1)


if __name__ == "__main__":
    unittest.main()
