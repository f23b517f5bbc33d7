"""
Tests for link extraction.
"""

from vault_context.core.parsing import extract_links, normalize_link_target


class TestExtractLinks:
    """Wiki links and image embeds."""

    def test_link_variants_yield_target(self):
        """Alias and anchor parts are stripped from document links."""
        links = extract_links("[[A]] [[A|Alias]] [[A#Header]] [[A#Header|Alias]]")
        assert links.document_links == ["A", "A", "A", "A"]

    def test_images_are_not_document_links(self):
        """Wiki and markdown image embeds go to image_links only."""
        links = extract_links("![[diagram.png]] and ![alt text](img/photo.jpg) plus [[Note]]")

        assert links.image_links == ["diagram.png", "img/photo.jpg"]
        assert links.document_links == ["Note"]

    def test_no_links(self):
        """Plain text has no links."""
        links = extract_links("nothing to see")
        assert links.image_links == []
        assert links.document_links == []


class TestNormalizeLinkTarget:
    """Normalized backlink keys."""

    def test_lowercase_and_extension(self):
        assert normalize_link_target(" Daily Tasks.MD ") == "daily tasks"

    def test_mdx_extension(self):
        assert normalize_link_target("Page.mdx") == "page"
