"""Tests for description summarization."""

from leafnote.discovery.summarize import (
    ELLIPSIS,
    generate_fallback_meta,
    short_desc_from_text,
    strip_markup,
    summarize_to_two_sentences,
)


class TestStripMarkup:
    """Tests for strip_markup."""

    def test_removes_tags_and_entities(self):
        """Test HTML is removed and entities unescaped."""
        assert strip_markup("<p>Tom &amp; Jerry</p>\n<br/>run") == "Tom & Jerry run"

    def test_none(self):
        """Test None gives an empty string."""
        assert strip_markup(None) == ""


class TestSummarizeToTwoSentences:
    """Tests for summarize_to_two_sentences."""

    def test_single_short_sentence_unchanged(self):
        """Test a short single sentence comes back as-is."""
        assert summarize_to_two_sentences("Hello world.") == "Hello world."

    def test_first_two_sentences(self):
        """Test only the first two sentences are kept."""
        text = "First one. Second one! Third one? Fourth."
        assert summarize_to_two_sentences(text) == "First one. Second one!"

    def test_markup_stripped(self):
        """Test markup is removed before splitting."""
        text = "<b>Bold</b> start.   Next <i>bit</i> here. Dropped."
        assert summarize_to_two_sentences(text) == "Bold start. Next bit here."

    def test_single_sentence_split_on_clause(self):
        """Test one sentence is split into two punctuated clauses."""
        text = "a boy finds a ring; the world changes"
        assert summarize_to_two_sentences(text) == "A boy finds a ring. The world changes."

    def test_long_sentence_truncated(self):
        """Test a long clause-free sentence is cut at a word boundary."""
        text = " ".join(["word"] * 100)

        result = summarize_to_two_sentences(text)

        assert result.endswith(ELLIPSIS)
        assert len(result) <= 301
        assert not result[:-1].endswith(" ")

    def test_empty(self):
        """Test empty input gives empty output."""
        assert summarize_to_two_sentences("") == ""
        assert summarize_to_two_sentences(None) == ""
        assert summarize_to_two_sentences("<p> </p>") == ""


class TestShortDescFromText:
    """Tests for short_desc_from_text."""

    def test_short_text_unchanged(self):
        """Test text within 220 characters is returned as-is."""
        assert short_desc_from_text("A short blurb.") == "A short blurb."

    def test_cut_at_sentence_boundary(self):
        """Test a sentence boundary past character 100 is preferred."""
        first = "x" * 120 + "."
        text = f"{first} " + "y " * 100

        assert short_desc_from_text(text) == first

    def test_cut_at_space_with_ellipsis(self):
        """Test the space fallback when no late sentence boundary exists."""
        text = "Short. " + " ".join(["word"] * 80)

        result = short_desc_from_text(text)

        assert result.endswith(ELLIPSIS)
        assert 180 <= len(result) - 1 <= 220

    def test_empty(self):
        """Test empty input."""
        assert short_desc_from_text(None) == ""


class TestGenerateFallbackMeta:
    """Tests for generate_fallback_meta."""

    def test_names_title_and_author(self):
        """Test the synthesized description names the book."""
        meta = generate_fallback_meta("Dune", "Frank Herbert")

        assert meta.is_fallback
        assert meta.author == "Frank Herbert"
        assert "Dune by Frank Herbert" in meta.short_description

    def test_without_author(self):
        """Test the fallback without an author."""
        meta = generate_fallback_meta("Emma")

        assert meta.author is None
        assert "Emma" in meta.short_description
        assert meta.short_description.count(".") >= 1
