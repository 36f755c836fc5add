"""Tests for honeypot, timing, content and priority heuristics."""

import pytest

from src.shared.contact.errors import (
    MalformedRequest,
    SessionExpired,
    SpamContent,
    SuspiciousPattern,
    TooFast,
    TooLong,
    TooShort,
)
from src.shared.contact.schemas import MessagePriority
from src.shared.contact.validators import (
    compute_priority,
    honeypot_triggered,
    parse_form_start_time,
    spam_keyword_score,
    suspicious_pattern_score,
    validate_content,
    validate_submission_timing,
)

NOW_MS = 1_750_000_000_000
NAME = "Priya Raman"
EMAIL = "priya.raman@ssmtech.in"
SUBJECT = "Batch timings for Python course"


class TestHoneypot:

    def test_empty_decoys_pass(self):
        assert honeypot_triggered({"website": "", "url": "   ", "link": None}) is False
        assert honeypot_triggered({}) is False

    def test_any_filled_decoy_trips(self):
        assert honeypot_triggered({"website": "", "url": "http://spam.biz", "link": ""}) is True
        assert honeypot_triggered({"link": "x"}) is True


class TestTiming:

    def test_exactly_minimum_is_allowed(self):
        assert validate_submission_timing(NOW_MS - 5000, NOW_MS) == 5000

    def test_under_minimum_is_too_fast(self):
        with pytest.raises(TooFast) as exc_info:
            validate_submission_timing(NOW_MS - 4999, NOW_MS)
        assert exc_info.value.message == "Please take more time to fill out the form"

    def test_exactly_maximum_is_allowed(self):
        assert validate_submission_timing(NOW_MS - 1_800_000, NOW_MS) == 1_800_000

    def test_over_maximum_is_expired(self):
        with pytest.raises(SessionExpired) as exc_info:
            validate_submission_timing(NOW_MS - 1_800_001, NOW_MS)
        assert exc_info.value.message == "Form session expired. Please refresh and try again."

    def test_future_start_is_too_fast(self):
        with pytest.raises(TooFast):
            validate_submission_timing(NOW_MS + 60_000, NOW_MS)

    def test_numeric_strings_accepted(self):
        assert validate_submission_timing(str(NOW_MS - 12_000), NOW_MS) == 12_000
        assert parse_form_start_time(" 1750000000000.0 ") == NOW_MS

    @pytest.mark.parametrize("raw", [None, "", "yesterday", True])
    def test_unparseable_start_is_malformed(self, raw):
        with pytest.raises(MalformedRequest) as exc_info:
            validate_submission_timing(raw, NOW_MS)
        assert exc_info.value.message == "Invalid form submission"


class TestContent:

    def test_clean_message_passes(self):
        validate_content(NAME, EMAIL, SUBJECT, "Could you share the weekend batch timings please?")

    def test_single_spam_keyword_is_tolerated(self):
        assert spam_keyword_score("I work in cryptocurrency analytics") == 1
        validate_content(NAME, EMAIL, SUBJECT, "I work in cryptocurrency analytics and want to learn Python.")

    def test_two_spam_keywords_rejected(self):
        with pytest.raises(SpamContent) as exc_info:
            validate_content(NAME, EMAIL, SUBJECT, "Get FREE MONEY now, just click here to claim it.")
        assert exc_info.value.message == "Message content appears to be spam"

    def test_keywords_counted_across_all_fields(self):
        with pytest.raises(SpamContent):
            validate_content("Lottery Winner", EMAIL, SUBJECT, "Please contact me about the course fees.")

    def test_single_pattern_is_tolerated(self):
        assert suspicious_pattern_score("Call me on 98765432100") == 1
        validate_content(NAME, EMAIL, SUBJECT, "Please call me back on 98765432100 about fees.")

    def test_two_patterns_rejected(self):
        with pytest.raises(SuspiciousPattern) as exc_info:
            validate_content(NAME, EMAIL, SUBJECT, "Heyyyyyy call 98765432100 for details")
        assert exc_info.value.message == "Message content contains suspicious patterns"

    def test_uppercase_run_counts_as_pattern(self):
        assert suspicious_pattern_score("PLEASEREPLYNOW") == 1
        with pytest.raises(SuspiciousPattern):
            validate_content(NAME, EMAIL, SUBJECT, "PLEASEREPLYNOW and call 98765432100")

    def test_multiple_urls_count_as_pattern(self):
        assert suspicious_pattern_score("see https://a.in") == 0
        assert suspicious_pattern_score("see https://a.in and http://b.in") == 1

    def test_spam_checked_before_length(self):
        with pytest.raises(SpamContent):
            validate_content(NAME, EMAIL, "casino loan", "hi")

    def test_too_short(self):
        with pytest.raises(TooShort) as exc_info:
            validate_content(NAME, EMAIL, SUBJECT, "Hi there")
        assert exc_info.value.message == "Message is too short. Please provide more details."

    def test_too_long(self):
        with pytest.raises(TooLong) as exc_info:
            validate_content(NAME, EMAIL, SUBJECT, "Hello world. " * 200)
        assert exc_info.value.message == "Message is too long. Please keep it under 2000 characters."


class TestPriority:

    def test_urgent_keywords(self):
        assert compute_priority("Need help ASAP", "My class link is not working") == MessagePriority.URGENT

    def test_urgent_wins_over_high(self):
        assert compute_priority("Payment issue", "This is urgent") == MessagePriority.URGENT

    def test_high_keywords(self):
        assert compute_priority("Fee payment", "I paid twice by mistake") == MessagePriority.HIGH

    def test_default_medium(self):
        assert compute_priority(SUBJECT, "Could you share the weekend batch timings?") == MessagePriority.MEDIUM
