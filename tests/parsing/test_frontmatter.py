"""
Tests for frontmatter parsing and rendering.

Tests cover:
1. Well-formed blocks
2. Files without frontmatter
3. Recovery from malformed YAML
4. Dropping invalid fields
5. Rendering a document back to text
"""

from vault_context.core.parsing import (
    load_frontmatter_data,
    parse_document,
    split_frontmatter,
    stringify_document,
)


class TestSplitFrontmatter:
    """Separating the block from the body."""

    def test_split(self):
        """Block and body are separated at the closing delimiter."""
        block, body = split_frontmatter("---\ntitle: A\n---\nBody text")
        assert block == "title: A"
        assert body == "Body text"

    def test_no_frontmatter(self):
        """Text without a leading delimiter is all body."""
        block, body = split_frontmatter("Just text\n---\nmore")
        assert block is None
        assert body == "Just text\n---\nmore"

    def test_unclosed_block(self):
        """An opening delimiter without a closing one is body."""
        text = "---\ntitle: A\nno end"
        assert split_frontmatter(text) == (None, text)


class TestParseDocument:
    """Validated parsing."""

    def test_known_fields(self):
        """Title, tags and summary are read."""
        parsed = parse_document("---\ntitle: Note\ntags:\n  - a\n  - b\nsummary: S\n---\nBody")

        assert parsed.frontmatter.title == "Note"
        assert parsed.frontmatter.tags == ["a", "b"]
        assert parsed.frontmatter.summary == "S"
        assert parsed.content == "Body"

    def test_yaml_date_becomes_string(self):
        """YAML dates are kept as ISO strings."""
        parsed = parse_document("---\ndate: 2024-01-05\n---\n")
        assert parsed.frontmatter.date == "2024-01-05"

    def test_invalid_yaml_keeps_whole_text(self):
        """Malformed YAML yields empty frontmatter and the full text as body."""
        text = "---\ntitle: [unclosed\n---\nBody"
        parsed = parse_document(text)

        assert parsed.frontmatter.title is None
        assert parsed.content == text

    def test_non_mapping_block(self):
        """A YAML list is not frontmatter."""
        text = "---\n- a\n- b\n---\nBody"
        assert load_frontmatter_data(text) is None
        assert parse_document(text).content == text

    def test_invalid_field_dropped(self):
        """A field with an invalid value is dropped; the rest survive."""
        parsed = parse_document("---\ntitle: Kept\ncategory: unknown\n---\nBody")

        assert parsed.frontmatter.title == "Kept"
        assert parsed.frontmatter.category is None

    def test_unknown_keys_ignored(self):
        """Keys outside the model do not fail parsing."""
        parsed = parse_document("---\ntitle: T\naliases: [x]\n---\nBody")
        assert parsed.frontmatter.title == "T"

    def test_empty_block(self):
        """An empty block parses to empty frontmatter."""
        parsed = parse_document("---\n---\nBody")
        assert parsed.frontmatter.title is None
        assert parsed.content == "Body"


class TestStringifyDocument:
    """Rendering frontmatter back to text."""

    def test_round_trip(self):
        """Rendered text parses back to the same data and body."""
        text = stringify_document("Body\n", {"title": "Note", "tags": ["x"]})

        assert text.startswith("---\n")
        data, body = load_frontmatter_data(text)
        assert data == {"title": "Note", "tags": ["x"]}
        assert body == "Body\n"

    def test_empty_data_renders_body_only(self):
        """No data means no block."""
        assert stringify_document("Body", {}) == "Body"
