"""
Tests for DocumentTokenizer.
"""

from vault_context.core.indexer import DocumentTokenizer
from vault_context.models.document import FrontMatter


class TestPathTokens:
    """Tokens taken from the file path."""

    def test_segments_and_basename(self):
        """Path segments split on separators; the file stem is kept whole."""
        tokens = DocumentTokenizer().path_tokens("/vault/notes/Daily-Tasks.md")

        assert {"vault", "notes", "daily", "tasks", "daily-tasks"} <= tokens


class TestContentTokens:
    """Tokens taken from the body."""

    def test_word_tokens_unicode(self):
        """Letter and digit runs are tokens; underscores split words."""
        tokens = DocumentTokenizer().word_tokens("Hello, Wörld_x 42!")
        assert tokens == {"hello", "wörld", "x", "42"}

    def test_header_tokens(self):
        """Each header line is one token."""
        tokens = DocumentTokenizer().header_tokens("# My Header\ntext\n## Sub Header\n")
        assert tokens == {"my header", "sub header"}


class TestTokenize:
    """Full token set of a document."""

    def test_includes_title_and_tags(self):
        """Title words and whole tags are indexed."""
        frontmatter = FrontMatter(title="Release Plan", tags=["Next.js", "planning"])
        tokens = DocumentTokenizer().tokenize("/v/plan.md", frontmatter, "body words")

        assert {"release", "plan", "next.js", "planning", "body", "words"} <= tokens
        assert "" not in tokens


class TestQueryTokens:
    """Search keyword splitting."""

    def test_split_and_lowercase(self):
        assert DocumentTokenizer().query_tokens("  Foo   BAR ") == ["foo", "bar"]

    def test_blank(self):
        assert DocumentTokenizer().query_tokens("   ") == []
