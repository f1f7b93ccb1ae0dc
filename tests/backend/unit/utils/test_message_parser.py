"""Tests for OPTIONS / ESCALATE marker parsing."""

from __future__ import annotations

import pytest

from utils.message_parser import clean_option_line, parse_message_markers


class TestParseOptions:
    def test_plain_reply_is_untouched(self) -> None:
        parsed = parse_message_markers("Your order has shipped.")

        assert parsed.content == "Your order has shipped."
        assert parsed.options == []
        assert parsed.escalation_message is None
        assert parsed.needs_escalation is False

    def test_extracts_options_and_strips_block(self) -> None:
        raw = "Which order?\n\n---OPTIONS---\nORD-1\nORD-2\n---END_OPTIONS---"

        parsed = parse_message_markers(raw)

        assert parsed.content == "Which order?"
        assert parsed.options == ["ORD-1", "ORD-2"]

    def test_option_lines_are_cleaned(self) -> None:
        raw = '---OPTIONS---\n1. "Track my order"\n- Cancel my order\n\n2) `Talk to a human`\n---END_OPTIONS---'

        parsed = parse_message_markers(raw)

        assert parsed.options == ["Track my order", "Cancel my order", "Talk to a human"]
        assert parsed.content == ""

    def test_sloppy_fences_are_accepted(self) -> None:
        raw = "Pick one\n-- options --\nYes\nNo\n--END OPTIONS--"

        parsed = parse_message_markers(raw)

        assert parsed.options == ["Yes", "No"]
        assert parsed.content == "Pick one"

    def test_unterminated_block_is_left_as_text(self) -> None:
        raw = "Pick one\n---OPTIONS---\nYes\nNo"

        parsed = parse_message_markers(raw)

        assert parsed.options == []
        assert parsed.content == raw


class TestParseEscalation:
    def test_extracts_escalation_message(self) -> None:
        raw = (
            "I could not find that order.\n"
            "---ESCALATE---\nHello! This is Aryan from the support team.\n---END_ESCALATE---"
        )

        parsed = parse_message_markers(raw)

        assert parsed.content == "I could not find that order."
        assert parsed.escalation_message == "Hello! This is Aryan from the support team."
        assert parsed.needs_escalation is True

    def test_both_blocks_are_split_out(self) -> None:
        raw = (
            "Sorry about that.\n"
            "---OPTIONS---\nTry again\nTalk to a human\n---END_OPTIONS---\n"
            "---ESCALATE---\nA human will follow up.\n---END_ESCALATE---"
        )

        parsed = parse_message_markers(raw)

        assert parsed.content == "Sorry about that."
        assert parsed.options == ["Try again", "Talk to a human"]
        assert parsed.escalation_message == "A human will follow up."

    def test_case_insensitive_markers(self) -> None:
        parsed = parse_message_markers("x\n---escalate---\nhandoff\n---end_escalate---")

        assert parsed.escalation_message == "handoff"


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("1. Yes", "Yes"),
        ("2) No", "No"),
        ("* Maybe", "Maybe"),
        ("• Later", "Later"),
        ("'quoted'", "quoted"),
        ("   ", ""),
    ],
)
def test_clean_option_line(line: str, expected: str) -> None:
    assert clean_option_line(line) == expected
