"""Tests for claude_usage.notifier."""

from claude_usage.models import UsageSnapshot
from claude_usage.notifier import LABEL_FIVE_HOUR, LABEL_WEEKLY, ThresholdNotifier


def fired(notifier, label, sequence):
    return [[e.threshold for e in notifier.evaluate(label, pct)] for pct in sequence]


class TestThresholdNotifier:
    def test_fires_once_per_upward_crossing(self):
        n = ThresholdNotifier((75, 90, 95))
        assert fired(n, '5-Hour', [60, 80, 85, 91, 96, 99]) == [[], [75], [], [90], [95], []]

    def test_drop_below_rearms(self):
        n = ThresholdNotifier((75, 90, 95))
        # 70 is below every threshold, so 97 crosses all three again
        assert fired(n, '5-Hour', [60, 80, 96, 70, 97]) == [[], [75], [90, 95], [], [75, 90, 95]]

    def test_partial_drop_rearms_only_passed_thresholds(self):
        n = ThresholdNotifier((75, 90, 95))
        assert fired(n, '5-Hour', [96, 92, 96, 80, 96]) == [[75, 90, 95], [], [95], [], [90, 95]]

    def test_exactly_at_threshold_fires(self):
        n = ThresholdNotifier((75,))
        assert fired(n, '5-Hour', [75, 74, 75]) == [[75], [], [75]]

    def test_windows_are_independent(self):
        n = ThresholdNotifier((75,))
        assert [e.window_label for e in n.evaluate('5-Hour', 80)] == ['5-Hour']
        assert [e.window_label for e in n.evaluate('Weekly', 80)] == ['Weekly']
        assert n.armed() == {('5-Hour', 75), ('Weekly', 75)}

    def test_check_snapshot(self):
        n = ThresholdNotifier((75, 90))
        events = n.check(UsageSnapshot(five_hour_pct=91, weekly_pct=80))
        assert [(e.window_label, e.threshold, e.pct) for e in events] == [
            (LABEL_FIVE_HOUR, 75, 91), (LABEL_FIVE_HOUR, 90, 91), (LABEL_WEEKLY, 75, 80),
        ]

    def test_check_disabled_window(self):
        n = ThresholdNotifier((75,))
        events = n.check(UsageSnapshot(five_hour_pct=91, weekly_pct=80), weekly=False)
        assert [e.window_label for e in events] == [LABEL_FIVE_HOUR]

    def test_threshold_override(self):
        n = ThresholdNotifier((75,))
        assert [e.threshold for e in n.evaluate('5-Hour', 60, thresholds=[50, 55])] == [50, 55]

    def test_severity(self):
        events = ThresholdNotifier((75, 90, 95)).evaluate('5-Hour', 100)
        assert [e.severity for e in events] == ['info', 'warning', 'error']
