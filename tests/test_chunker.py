"""Tests for message splitting."""

import pytest

from herald.communication.chunker import (
    DEFAULT_CHAR_LIMIT,
    build_chunks,
    prepare_and_split,
    split_message,
)


def _squash(text: str) -> str:
    return "".join(text.split())


# ── Identity case ───────────────────────────────────────────

class TestUnderLimit:
    def test_empty_string(self):
        assert split_message("") == [""]

    def test_none_is_treated_as_empty(self):
        assert split_message(None) == [""]

    def test_short_text_is_trimmed(self):
        assert split_message("  Hello there.  \n") == ["Hello there."]

    def test_exactly_at_limit(self):
        text = "a" * DEFAULT_CHAR_LIMIT
        assert split_message(text) == [text]

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            split_message("hello", limit=0)


# ── Splitting cascade ───────────────────────────────────────

class TestParagraphs:
    def test_two_large_paragraphs(self):
        p1, p2 = "a" * 1500, "b" * 1500
        text = f"{p1}\n\n{p2}"
        chunks = split_message(text)
        assert chunks == [p1, p2]
        assert "\n\n".join(chunks) == text

    def test_small_paragraphs_are_packed(self):
        paragraphs = [c * 600 for c in "abcd"]
        text = "\n\n".join(paragraphs)
        chunks = split_message(text)
        assert chunks == ["\n\n".join(paragraphs[:3]), paragraphs[3]]

    def test_blank_lines_with_spaces_separate_paragraphs(self):
        p1, p2 = "a" * 1500, "b" * 1500
        chunks = split_message(f"{p1}\n   \n{p2}")
        assert chunks == [p1, p2]


class TestLines:
    def test_oversized_paragraph_splits_on_lines(self):
        lines = [c * 900 for c in "xyz"]
        text = "\n".join(lines)
        chunks = split_message(text)
        assert chunks == [f"{lines[0]}\n{lines[1]}", lines[2]]
        assert "\n".join(chunks) == text

    def test_paragraph_before_oversized_one_is_flushed(self):
        short = "intro"
        lines = [c * 900 for c in "xyz"]
        text = short + "\n\n" + "\n".join(lines)
        chunks = split_message(text)
        assert chunks[0] == short
        assert chunks[1:] == [f"{lines[0]}\n{lines[1]}", lines[2]]


class TestSentences:
    def test_oversized_line_splits_on_sentences(self):
        sentences = [c * 499 + "." for c in "abcde"]
        text = " ".join(sentences)
        chunks = split_message(text)
        assert chunks == [" ".join(sentences[:3]), " ".join(sentences[3:])]
        assert " ".join(chunks) == text

    def test_question_and_exclamation_marks_end_sentences(self):
        sentences = ["a" * 1200 + "?", "b" * 1200 + "!", "c" * 100 + "."]
        chunks = split_message(" ".join(sentences))
        assert chunks == [sentences[0], f"{sentences[1]} {sentences[2]}"]


class TestHardSplit:
    def test_words_split_at_spaces(self):
        text = ("abcd " * 1000).strip()
        chunks = split_message(text)
        assert all(len(c) <= DEFAULT_CHAR_LIMIT for c in chunks)
        assert " ".join(chunks) == text
        assert all(not c.startswith(" ") and not c.endswith(" ") for c in chunks)

    def test_no_spaces_hard_cut(self):
        text = "x" * 4500
        assert split_message(text) == ["x" * 2000, "x" * 2000, "x" * 500]

    def test_space_too_early_is_ignored(self):
        text = "ab " + "y" * 3000
        chunks = split_message(text)
        assert len(chunks[0]) == DEFAULT_CHAR_LIMIT
        assert _squash("".join(chunks)) == _squash(text)


class TestLimitsHold:
    def test_mixed_structure_small_limit(self):
        text = (
            "First paragraph is short.\n\n"
            "Second paragraph has a long line that goes on. And on! And on? "
            "Then a very_long_token_without_any_spaces_at_all_that_must_be_cut.\n"
            "Another line.\n\n"
            "Last."
        )
        chunks = split_message(text, limit=30)
        assert all(0 < len(c) <= 30 for c in chunks)
        assert _squash("".join(chunks)) == _squash(text)

    def test_order_is_preserved(self):
        paragraphs = [f"Paragraph {i}. " + "z" * 700 for i in range(6)]
        chunks = split_message("\n\n".join(paragraphs))
        joined = "\n\n".join(chunks)
        positions = [joined.index(f"Paragraph {i}.") for i in range(6)]
        assert positions == sorted(positions)


# ── Model indicator ─────────────────────────────────────────

class TestPrepareAndSplit:
    def test_indicator_appended(self):
        assert prepare_and_split("Hello", "\n-# Model: gpt-4o") == ["Hello\n-# Model: gpt-4o"]

    def test_indicator_counts_toward_limit(self):
        chunks = prepare_and_split("a" * 1990, "\n-# Model: gpt-4o")
        assert chunks == ["a" * 1990, "-# Model: gpt-4o"]

    def test_no_indicator(self):
        assert prepare_and_split("Hello", None) == ["Hello"]


class TestBuildChunks:
    def test_flags(self):
        chunks = build_chunks(["a", "b", "c"])
        assert [c.is_first for c in chunks] == [True, False, False]
        assert [c.is_last for c in chunks] == [False, False, True]
        assert [c.index for c in chunks] == [0, 1, 2]

    def test_single_chunk_is_first_and_last(self):
        (chunk,) = build_chunks([""], is_error=True)
        assert chunk.is_first and chunk.is_last
        assert chunk.is_error
