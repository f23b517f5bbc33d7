"""
Indexing of vault documents.

DocumentTokenizer turns a file into search tokens; Indexer keeps the
inverted index and the backlink graph built from them.
"""

from vault_context.core.indexer.indexer import Indexer
from vault_context.core.indexer.tokenizer import DocumentTokenizer

__all__ = ["Indexer", "DocumentTokenizer"]
