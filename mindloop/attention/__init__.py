"""Attention system: urgency, orienting and focus tracking per agent."""

from mindloop.attention.alerting import calculate_alertness, create_readiness_state, detect_urgency
from mindloop.attention.controller import AttentionController, make_allocation_decision
from mindloop.attention.orienting import analyze_orienting, get_attention_direction, should_shift_attention
from mindloop.attention.selective import create_filter_criteria, filter_by_relevance, score_relevance
from mindloop.attention.sustained import FocusTracker, calculate_focus_strength, is_focus_maintained

__all__ = [
    "AttentionController",
    "FocusTracker",
    "analyze_orienting",
    "calculate_alertness",
    "calculate_focus_strength",
    "create_filter_criteria",
    "create_readiness_state",
    "detect_urgency",
    "filter_by_relevance",
    "get_attention_direction",
    "is_focus_maintained",
    "make_allocation_decision",
    "score_relevance",
    "should_shift_attention",
]
