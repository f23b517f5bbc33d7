"""
Token extraction for the inverted index.

Search is exact-token matching, so everything the index can answer must be
produced here: path segments, the file name, title words, tags, body words
and whole header lines.
"""

import os
import re

from vault_context.models.document import FrontMatter

PATH_SEPARATOR_PATTERN = re.compile(r"[/\s\-.]+")
WORD_PATTERN = re.compile(r"[^\W_]+")
HEADER_PATTERN = re.compile(r"^#+\s+(.*)$", re.MULTILINE)
MARKDOWN_EXTENSION = re.compile(r"\.mdx?$", re.IGNORECASE)


class DocumentTokenizer:
    """
    Produces the lowercased token set of a document.

    Usage:
        tokenizer = DocumentTokenizer()
        tokens = tokenizer.tokenize("/vault/notes/Daily Tasks.md", frontmatter, body)
        terms = tokenizer.query_tokens("daily tasks")
    """

    def tokenize(self, file_path: str, frontmatter: FrontMatter, content: str) -> set[str]:
        """
        Collect every token a document is indexed under.

        Args:
            file_path: Absolute file path
            frontmatter: Parsed frontmatter
            content: Body without frontmatter

        Returns:
            Set of non-empty lowercased tokens
        """
        tokens: set[str] = set()

        tokens.update(self.path_tokens(file_path))

        if frontmatter.title:
            tokens.update(frontmatter.title.lower().split())
        if frontmatter.tags:
            tokens.update(tag.lower() for tag in frontmatter.tags)

        tokens.update(self.word_tokens(content))
        tokens.update(self.header_tokens(content))

        tokens.discard("")
        return tokens

    def path_tokens(self, file_path: str) -> set[str]:
        """
        Tokens from the path: each segment plus the file name without extension.

        Args:
            file_path: File path

        Returns:
            Lowercased path tokens
        """
        lowered = file_path.lower()
        tokens = {segment for segment in PATH_SEPARATOR_PATTERN.split(lowered) if segment}

        basename = os.path.basename(lowered)
        tokens.add(os.path.splitext(basename)[0])
        tokens.add(MARKDOWN_EXTENSION.sub("", basename))
        return tokens

    def word_tokens(self, text: str) -> set[str]:
        """Unicode letter/digit runs of the lowercased text."""
        return set(WORD_PATTERN.findall(text.lower()))

    def header_tokens(self, text: str) -> set[str]:
        """Each markdown header line as one token."""
        return {header.strip().lower() for header in HEADER_PATTERN.findall(text)}

    def query_tokens(self, keyword: str) -> list[str]:
        """
        Split a search keyword into the tokens that must all match.

        Args:
            keyword: Raw search keyword

        Returns:
            Lowercased tokens in query order; empty for a blank keyword
        """
        return keyword.strip().lower().split()
