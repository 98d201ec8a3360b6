"""Unit tests for local heuristics and the two-stage TranscriptCleaner."""

import asyncio

import aiohttp
import pytest

from conftest import FakeCleaningEngine
from voiceintake.errors import TranscriptionError
from voiceintake.transcription.cleaner import TranscriptCleaner
from voiceintake.transcription.heuristics import (
    apply_local_heuristics,
    normalize_punctuation,
    normalize_units,
    numbers_to_digits,
    strip_fillers,
)


@pytest.mark.unit
class TestLocalHeuristics:
    """Filler removal, number and unit normalization."""

    def test_fillers_are_removed(self):
        assert apply_local_heuristics("um I have, uh, a headache") == "I have, a headache"

    def test_fillers_inside_words_are_kept(self):
        assert strip_fillers("the drum humming") == "the drum humming"

    def test_small_numbers_become_digits(self):
        assert numbers_to_digits("for two days, three times") == "for 2 days, 3 times"

    def test_number_words_inside_words_are_kept(self):
        assert numbers_to_digits("someone often") == "someone often"

    def test_dose_units(self):
        assert normalize_units("five milligrams and ten milliliters") == "five mg and ten ml"
        assert normalize_units("50 micrograms") == "50 mcg"

    def test_combined(self):
        assert apply_local_heuristics("uh  I take two   milligrams") == "I take 2 mg"

    def test_plain_text_is_untouched(self):
        assert apply_local_heuristics("follow up") == "follow up"

    def test_only_fillers_becomes_empty(self):
        assert apply_local_heuristics("um, uh.") == ""

    @pytest.mark.parametrize("text,expected", [
        ("I feel fine, um.", "I feel fine"),
        ("it started yesterday; uh", "it started yesterday"),
        ("my medications are: erm", "my medications are"),
    ])
    def test_trailing_filler_leaves_no_dangling_separator(self, text, expected):
        assert apply_local_heuristics(text) == expected

    def test_local_only_cleanup_after_trailing_filler(self):
        assert asyncio.run(TranscriptCleaner().clean("I feel fine, um.")) == "I feel fine"


@pytest.mark.unit
class TestNormalizePunctuation:
    """Sentence repair applied to remote cleanup output."""

    def test_adds_terminal_period_and_capital(self):
        assert normalize_punctuation("my throat hurts") == "My throat hurts."

    def test_keeps_existing_terminal_punctuation(self):
        assert normalize_punctuation("Is it serious?") == "Is it serious?"

    def test_breaks_run_on_sentence_at_pronoun(self):
        assert normalize_punctuation("it hurts when swallowing I also have a fever") == \
            "It hurts when swallowing. I also have a fever."

    def test_empty(self):
        assert normalize_punctuation("  ") == ""


@pytest.mark.unit
class TestTranscriptCleaner:
    """Test cases for TranscriptCleaner."""

    def test_local_only_without_engine(self):
        cleaner = TranscriptCleaner()

        assert asyncio.run(cleaner.clean("um follow up")) == "follow up"

    def test_remote_result_is_normalized(self):
        engine = FakeCleaningEngine(reply="i have had a fever for 2 days")
        cleaner = TranscriptCleaner(engine)

        result = asyncio.run(cleaner.clean("uh I have had a fever for two days", "en"))

        assert result == "I have had a fever for 2 days."
        assert engine.calls == ["I have had a fever for 2 days"]

    @pytest.mark.parametrize("error", [
        TranscriptionError("boom"),
        aiohttp.ClientConnectionError("offline"),
        asyncio.TimeoutError(),
    ])
    def test_remote_failure_falls_back_to_local_text(self, error):
        cleaner = TranscriptCleaner(FakeCleaningEngine(error=error))

        result = asyncio.run(cleaner.clean("um follow up"))

        assert result == "follow up"
        assert cleaner.remote_failures == 1

    def test_empty_remote_reply_falls_back_to_local_text(self):
        cleaner = TranscriptCleaner(FakeCleaningEngine(reply="   "))

        assert asyncio.run(cleaner.clean("follow up")) == "follow up"
        assert cleaner.remote_failures == 0

    def test_engine_not_called_for_empty_text(self):
        engine = FakeCleaningEngine(reply="should not be used")
        cleaner = TranscriptCleaner(engine)

        assert asyncio.run(cleaner.clean("uh")) == ""
        assert engine.calls == []
