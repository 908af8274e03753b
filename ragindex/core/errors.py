"""
Error taxonomy for building, restoring and validating retrieval indexes.

Every error here is fatal for the operation that raised it. A query that
returns no matching hit is not an error; the validation harness records it as
a failed case instead.
"""

from typing import Optional


class RagIndexError(Exception):
    """Base class for all ragindex errors."""
    pass


class ConfigurationError(RagIndexError):
    """Missing archive path, empty or malformed test cases, unreadable config."""
    pass


class ArchiveFormatError(RagIndexError):
    """Archive could not be decompressed or its payload could not be decoded."""
    pass


class UnsupportedFormatError(ArchiveFormatError):
    """Archive does not start with a gzip header."""
    pass


class EmbeddingProviderError(RagIndexError):
    """Embedding generation failed for a document or a query."""

    def __init__(self, message: str, document_id: Optional[str] = None):
        if document_id is not None:
            message = f"{message} (document id: {document_id})"
        super().__init__(message)
        self.document_id = document_id


class SchemaMismatchError(RagIndexError):
    """Restored payload does not declare the expected field set."""
    pass


class DocumentValidationError(RagIndexError):
    """Document rejected on insert (wrong vector size, duplicate id, unknown field)."""
    pass
