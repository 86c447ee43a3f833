"""Tests for mindloop/attention/sustained.py — focus continuity."""

from __future__ import annotations

from datetime import timedelta

import pytest

from mindloop.attention.sustained import FocusTracker, calculate_focus_strength, is_focus_maintained
from mindloop.core.models import AlertingAnalysis, FocusState, OrientingAnalysis, UrgencyLevel


def _focus(topic="cooking", task=None, turn_count=1, **kwargs) -> FocusState:
    return FocusState(agent_id="a", current_topic=topic, current_task=task, turn_count=turn_count, **kwargs)


class TestIsFocusMaintained:
    def test_no_previous(self):
        assert is_focus_maintained(_focus(), None) is False

    def test_same_topic_within_window(self):
        previous = _focus()
        current = _focus(last_updated=previous.last_updated + timedelta(minutes=10))
        assert is_focus_maintained(current, previous) is True

    def test_window_expired(self):
        previous = _focus()
        current = _focus(last_updated=previous.last_updated + timedelta(hours=2))
        assert is_focus_maintained(current, previous) is False

    def test_topic_change(self):
        previous = _focus()
        assert is_focus_maintained(_focus(topic="gardening"), previous) is False

    def test_task_change(self):
        previous = _focus(task="bake")
        assert is_focus_maintained(_focus(task="fry"), previous) is False


class TestFocusStrength:
    @pytest.mark.parametrize("turns,strength", [(1, 0.1), (5, 0.5), (10, 1.0), (25, 1.0)])
    def test_strength(self, turns, strength):
        assert calculate_focus_strength(_focus(turn_count=turns)) == pytest.approx(strength)


class TestFocusTracker:
    @pytest.fixture
    def tracker(self, clock) -> FocusTracker:
        return FocusTracker(window_seconds=3600, clock=clock)

    def _update(self, tracker, topic="cooking", task=None, urgency=UrgencyLevel.MEDIUM):
        return tracker.update_focus(
            "agent-1",
            OrientingAnalysis(topic=topic, task=task),
            AlertingAnalysis(urgency=urgency),
            conversation_id="c1",
        )

    def test_first_update(self, tracker, clock):
        focus = self._update(tracker, urgency=UrgencyLevel.HIGH)
        assert focus.turn_count == 1
        assert focus.urgency == UrgencyLevel.HIGH
        assert focus.last_updated == clock.now
        assert focus.last_conversation_id == "c1"
        assert tracker.get_focus("agent-1") is focus

    def test_maintained_focus_counts_turns(self, tracker, clock):
        self._update(tracker)
        clock.advance(minutes=10)
        assert self._update(tracker).turn_count == 2

    def test_focus_resets_after_window(self, tracker, clock):
        self._update(tracker)
        clock.advance(minutes=10)
        self._update(tracker)
        clock.advance(hours=2)
        assert self._update(tracker).turn_count == 1

    def test_topic_shift_resets(self, tracker, clock):
        self._update(tracker)
        self._update(tracker)
        assert self._update(tracker, topic="gardening").turn_count == 1

    def test_agents_are_independent(self, tracker):
        self._update(tracker)
        assert tracker.get_focus("agent-2") is None

    def test_clear_and_list(self, tracker):
        self._update(tracker)
        assert len(tracker.all_focuses()) == 1
        tracker.clear_focus("agent-1")
        assert tracker.get_focus("agent-1") is None
        assert tracker.all_focuses() == []
