"""Tests for the section classifier."""

import asyncio

import pytest

from src.core.llm import LLMError
from src.models import Classified, ClassificationUncertain, LibraryCategory
from src.services.section_classifier import SectionClassifier

from tests.fakes import FakeLLM


def classify(classifier: SectionClassifier, title: str):
    return asyncio.run(classifier.classify(title))


class TestExactTitles:
    """Titles that never reach the model."""

    def test_title_and_cover_letter_short_circuit(self):
        llm = FakeLLM()
        classifier = SectionClassifier(llm)

        assert classify(classifier, "Title") == LibraryCategory.TITLE
        assert classify(classifier, "  cover letter ") == LibraryCategory.COVER_LETTER
        assert llm.prompts == []


class TestModelClassification:
    """Replies from the model are trusted when recognisable."""

    @pytest.mark.parametrize("reply,expected", [
        ("team", LibraryCategory.TEAM),
        ("\"references\"", LibraryCategory.REFERENCES),
        ("experience.", LibraryCategory.EXPERIENCE),
        ("cover-letter", LibraryCategory.COVER_LETTER),
        ("null", None),
    ])
    def test_recognised_replies(self, reply, expected):
        classifier = SectionClassifier(FakeLLM(replies=[reply]))

        assert classify(classifier, "Some Section") == expected

    def test_model_answer_beats_keywords(self):
        # Keywords alone would say experience
        classifier = SectionClassifier(FakeLLM(replies=["null"]))

        assert classify(classifier, "Relevant Experience With Budgets") is None

    def test_interpret_reply_flags_garbage(self):
        result = SectionClassifier.interpret_reply("Budget", "I am not sure")

        assert isinstance(result, ClassificationUncertain)
        assert result.raw_reply == "I am not sure"


class TestKeywordRecovery:
    """Keyword table used when the model cannot answer."""

    def test_unavailable_model_uses_keywords(self):
        classifier = SectionClassifier(FakeLLM(available=False))

        assert classify(classifier, "Project Team") == LibraryCategory.TEAM
        assert classify(classifier, "Client References") == LibraryCategory.REFERENCES
        assert classify(classifier, "Firm Qualifications") == LibraryCategory.EXPERIENCE
        assert classify(classifier, "Budget") is None

    def test_team_wins_over_experience(self):
        assert SectionClassifier.classify_by_keywords("Key Personnel and Experience") == LibraryCategory.TEAM

    def test_model_error_recovers(self):
        def boom(prompt, system):
            raise LLMError("rate limited")

        classifier = SectionClassifier(FakeLLM(handler=boom))

        assert classify(classifier, "Staff Qualifications") == LibraryCategory.TEAM

    def test_unrecognised_reply_recovers(self):
        classifier = SectionClassifier(FakeLLM(replies=["maybe"]))

        assert classify(classifier, "Past Project Examples") == LibraryCategory.REFERENCES

    def test_no_llm_at_all(self):
        result = asyncio.run(SectionClassifier(None).classify_with_model("Approach"))

        assert isinstance(result, ClassificationUncertain)
        assert not isinstance(result, Classified)

    def test_empty_title(self):
        assert SectionClassifier.classify_by_keywords("   ") is None
