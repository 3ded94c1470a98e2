"""Tests for latest-question extraction and cache key derivation."""

import base64

from questions import CACHE_KEY_PREFIX, cache_key_for, extract_latest_question, question_from_key


class TestExtractLatestQuestion:
    def test_picks_latest_question(self):
        text = (
            "Tell me about yourself. What is your experience with Kubernetes? "
            "Also, how do you handle outages?"
        )
        assert extract_latest_question(text) == "how do you handle outages?"

    def test_single_question(self):
        assert extract_latest_question("Why did you leave your last job?") == "Why did you leave your last job?"

    def test_case_insensitive_lead_words(self):
        assert extract_latest_question("COULD you walk me through it?") == "COULD you walk me through it?"

    def test_without_question_mark_runs_to_end(self):
        assert extract_latest_question("so which database would you pick") == "which database would you pick"

    def test_without_question_mark_stops_at_next_lead_word(self):
        # the latest lead word wins, so the fragment runs to the end
        assert extract_latest_question("what is sharding how does it scale") == "how does it scale"

    def test_normalizes_whitespace(self):
        assert extract_latest_question("Where  do\n you   see yourself?") == "Where do you see yourself?"

    def test_lead_word_must_start_a_word(self):
        # "somehow" and "scan" are not lead words
        assert extract_latest_question("I somehow scan logs daily.") is None

    def test_no_question(self):
        assert extract_latest_question("Tell me about yourself.") is None

    def test_empty(self):
        assert extract_latest_question("") is None
        assert extract_latest_question("   ") is None

    def test_trailing_lead_word_alone_is_not_a_question(self):
        assert extract_latest_question("I know what") is None


class TestCacheKey:
    def test_key_is_prefixed_base64_of_question(self):
        key = cache_key_for("Intro. How do you handle outages?")
        expected = base64.b64encode("How do you handle outages?".encode()).decode()
        assert key == CACHE_KEY_PREFIX + expected

    def test_key_roundtrips_to_question(self):
        key = cache_key_for("Ok. Can you explain CAP / ACID & \"BASE\"?")
        assert question_from_key(key) == 'Can you explain CAP / ACID & "BASE"?'

    def test_same_question_same_key(self):
        a = cache_key_for("Hi there. What is a mutex?")
        b = cache_key_for("Something else entirely. What is a mutex?")
        assert a == b

    def test_no_question_means_no_key(self):
        assert cache_key_for("Thanks, that was great.") is None

    def test_unicode_question(self):
        key = cache_key_for("Why use naïve Bayes?")
        assert question_from_key(key) == "Why use naïve Bayes?"
