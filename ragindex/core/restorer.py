"""
Index restorer: gzip archive -> payload -> live document store.

A restored store never re-embeds its documents (insert hook passes vectors
through) and embeds query text on every search.
"""

import asyncio
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from ..util.logging import logger
from ..vector.embeddings import IEmbeddingProvider
from ..vector.hooks import EmbeddingHook
from ..vector.store import DocumentStore
from ..vector.types import DEFAULT_SCHEMA, IndexSchema
from . import config
from .archive import ArchiveCodec
from .errors import ArchiveFormatError, ConfigurationError, DocumentValidationError, SchemaMismatchError
from .persistence import deserialize_payload


def _describe_mismatch(expected: IndexSchema, actual: IndexSchema) -> str:
    expected_fields = expected.to_dict()
    actual_fields = actual.to_dict()
    missing = sorted(set(expected_fields) - set(actual_fields))
    unexpected = sorted(set(actual_fields) - set(expected_fields))
    changed = sorted(
        name for name in set(expected_fields) & set(actual_fields)
        if expected_fields[name] != actual_fields[name]
    )
    parts = []
    if missing:
        parts.append(f"missing {missing}")
    if unexpected:
        parts.append(f"unexpected {unexpected}")
    if changed:
        parts.append("type changed for " + ", ".join(f"{n} ({expected_fields[n]} -> {actual_fields[n]})" for n in changed))
    return "; ".join(parts)


async def restore(
    archive: bytes,
    schema: Optional[IndexSchema] = DEFAULT_SCHEMA,
    provider: Optional[IEmbeddingProvider] = None,
    codec: Optional[ArchiveCodec] = None,
    vector_store_factory: Optional[Callable] = None,
) -> DocumentStore:
    """Restore a document store from archive bytes.

    Args:
        archive: gzip archive produced by IndexBuilder.
        schema: Expected schema; a payload declaring anything else raises
            SchemaMismatchError. ``None`` accepts the payload's own schema.
        provider: Embedding provider used for query text.
        codec: Decompression path; defaults to the configured ARCHIVE_CODEC.
        vector_store_factory: Callable ``dimension -> IVectorStore``.

    Returns:
        A fully populated store; no store is returned on any failure.
    """
    codec = codec or config.get_archive_codec()
    provider = provider if provider is not None else config.get_embedding_provider()
    vector_store_factory = vector_store_factory or config.get_vector_store

    payload = await codec.decompress(archive)
    declared, documents = deserialize_payload(payload)
    if schema is not None and not declared.matches(schema):
        raise SchemaMismatchError(f"Archive schema does not match expected schema: {_describe_mismatch(schema, declared)}")

    store = DocumentStore(declared, EmbeddingHook.for_restore(provider), vector_store_factory(declared.dimension))
    try:
        for document in documents:
            await store.insert(document)
    except DocumentValidationError as e:
        raise ArchiveFormatError(f"Archive contains an invalid document: {e}") from e

    logger.log_restore(codec.name, len(store), {"payload_bytes": len(payload)})
    return store


async def restore_file(path: Union[str, Path], **kwargs) -> DocumentStore:
    """Read an archive file and restore it (see ``restore`` for kwargs)."""
    archive_path = Path(path)
    if not archive_path.is_file():
        raise ConfigurationError(f"Archive file not found: {archive_path}")
    archive = await asyncio.to_thread(archive_path.read_bytes)
    return await restore(archive, **kwargs)


class IndexLoader:
    """Restores archives by path, once per path.

    Concurrent loads of the same path share a single restore; failed loads are
    not cached.
    """

    def __init__(self, **restore_kwargs):
        self.restore_kwargs = restore_kwargs
        self._cache: Dict[str, DocumentStore] = {}
        self._pending: Dict[str, asyncio.Future] = {}

    def __contains__(self, path) -> bool:
        return str(Path(path).resolve()) in self._cache

    async def load(self, path: Union[str, Path]) -> DocumentStore:
        key = str(Path(path).resolve())
        if key in self._cache:
            return self._cache[key]

        pending = self._pending.get(key)
        if pending is None:
            pending = asyncio.ensure_future(restore_file(key, **self.restore_kwargs))
            self._pending[key] = pending
            try:
                store = await pending
            finally:
                self._pending.pop(key, None)
            self._cache[key] = store
            return store

        return await pending

    def evict(self, path: Union[str, Path]) -> None:
        self._cache.pop(str(Path(path).resolve()), None)
