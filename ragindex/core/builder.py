"""
Index builder: corpus -> document store -> serialized payload -> gzip archive.
"""

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..util.logging import logger
from ..vector.embeddings import IEmbeddingProvider
from ..vector.hooks import EmbeddingHook
from ..vector.store import DocumentStore
from ..vector.types import DEFAULT_SCHEMA, IndexSchema, SearchableDocument
from . import config
from .archive import ArchiveCodec, SyncArchiveCodec
from .errors import ConfigurationError, EmbeddingProviderError, SchemaMismatchError
from .persistence import PERSIST_FORMATS, serialize_index

CorpusItem = Union[SearchableDocument, Mapping]


@dataclass
class BuildResult:
    """Archive bytes plus size statistics for reporting."""

    archive: bytes
    document_count: int
    payload_size: int

    @property
    def archive_size(self) -> int:
        return len(self.archive)

    @property
    def space_saved_percent(self) -> float:
        if not self.payload_size:
            return 0.0
        return (self.payload_size - self.archive_size) / self.payload_size * 100


def write_archive(path: Union[str, Path], archive: bytes) -> Path:
    """Write ``archive`` atomically: a failed write never leaves a partial file."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(archive)
        os.replace(tmp_name, target)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    return target


class IndexBuilder:
    """Builds a persisted archive from a corpus.

    Args:
        provider: Embedding provider used to embed documents on insert.
        schema: Index schema; defaults to id/pageId/url/text/embedding[512].
        embed_properties: Document fields concatenated into the embedded text.
        persist_format: ``binary`` (default) or ``json``.
        codec: Archive codec; only its compression side is used here.
        max_concurrency: In-flight embedding calls; 1 means strictly sequential.
        vector_store_factory: Callable ``dimension -> IVectorStore``.
    """

    def __init__(
        self,
        provider: Optional[IEmbeddingProvider] = None,
        schema: IndexSchema = DEFAULT_SCHEMA,
        embed_properties: Sequence[str] = ("text",),
        persist_format: Optional[str] = None,
        codec: Optional[ArchiveCodec] = None,
        max_concurrency: Optional[int] = None,
        vector_store_factory: Optional[Callable] = None,
    ):
        self.provider = provider if provider is not None else config.get_embedding_provider()
        self.schema = schema
        self.embed_properties = tuple(embed_properties)
        self.persist_format = persist_format or config.PERSIST_FORMAT
        self.codec = codec or SyncArchiveCodec()
        self.max_concurrency = max_concurrency or config.BUILD_CONCURRENCY
        self.vector_store_factory = vector_store_factory or config.get_vector_store

        if not self.embed_properties:
            raise ConfigurationError("At least one embed property is required")
        unknown = [name for name in self.embed_properties if name not in schema.fields]
        if unknown:
            raise ConfigurationError(f"Embed properties not in schema: {', '.join(unknown)}")
        if self.persist_format not in PERSIST_FORMATS:
            raise ConfigurationError(f"Unknown persist format '{self.persist_format}'")

    def _new_store(self) -> DocumentStore:
        hook = EmbeddingHook.for_build(self.provider, self.embed_properties)
        return DocumentStore(self.schema, hook, self.vector_store_factory(self.schema.dimension))

    def _documents(self, corpus: Iterable[CorpusItem]) -> List[SearchableDocument]:
        documents = []
        for item in corpus:
            if isinstance(item, SearchableDocument):
                documents.append(item)
            else:
                documents.append(SearchableDocument.from_dict(item, self.schema.vector_property))
        return documents

    async def build_store(self, corpus: Iterable[CorpusItem]) -> DocumentStore:
        """Populate a fresh store, embedding every document on insert."""
        documents = self._documents(corpus)
        store = self._new_store()
        logger.log_build("start", details={
            "documents": len(documents),
            "embed_properties": list(self.embed_properties),
            "concurrency": self.max_concurrency,
        })

        try:
            if self.max_concurrency > 1:
                await store.insert_many(documents, self.max_concurrency)
            else:
                for count, document in enumerate(documents, 1):
                    await store.insert(document)
                    if count % 100 == 0:
                        logger.log_build("insert", "progress", {"inserted": count, "total": len(documents)})
        except EmbeddingProviderError as e:
            logger.log_build("embed", "failed", {"document_id": e.document_id, "error": str(e)})
            raise

        logger.log_build("insert", details={"inserted": len(store)})
        return store

    def package(self, store: DocumentStore) -> BuildResult:
        """Serialize and compress a populated store."""
        payload = serialize_index(store, self.persist_format)
        archive = self.codec.compress(payload)
        result = BuildResult(archive=archive, document_count=len(store), payload_size=len(payload))
        logger.log_build("package", details={
            "format": self.persist_format,
            "payload_bytes": result.payload_size,
            "archive_bytes": result.archive_size,
            "saved_percent": round(result.space_saved_percent, 1),
        })
        return result

    async def build_result(self, corpus: Iterable[CorpusItem]) -> BuildResult:
        return self.package(await self.build_store(corpus))

    async def build(self, corpus: Iterable[CorpusItem]) -> bytes:
        """Build and return the compressed archive bytes."""
        return (await self.build_result(corpus)).archive

    async def build_to_file(self, corpus: Iterable[CorpusItem], path: Union[str, Path]) -> BuildResult:
        """Build and write the archive; nothing is written if the build fails."""
        result = await self.build_result(corpus)
        write_archive(path, result.archive)
        logger.log_build("write", details={"path": str(path), "archive_bytes": result.archive_size})
        return result


async def build(corpus: Iterable[CorpusItem], **kwargs) -> bytes:
    """Build an archive with an ad-hoc IndexBuilder (see IndexBuilder for kwargs)."""
    return await IndexBuilder(**kwargs).build(corpus)


class BuildConfig(BaseModel):
    """Config-file description of a build (see scripts/build_index.py)."""

    model_config = ConfigDict(populate_by_name=True)

    output_dir: str = Field("./dist", alias="outputDir")
    output_file_name: str = Field("ragindex", alias="outputFileName")
    source_folder: str = Field(".", alias="sourceFolder")
    source_files: Union[str, List[str]] = Field("**/*.json", alias="sourceFiles")
    schema_fields: Optional[Dict[str, str]] = Field(None, alias="schema")
    embed_properties: List[str] = Field(default_factory=lambda: ["text"], alias="embedProperties")
    persist_format: Optional[str] = Field(None, alias="persistFormat")
    queries: List[Any] = Field(default_factory=list)
    search: Optional[Dict[str, Any]] = None

    @field_validator('source_files')
    @classmethod
    def patterns_must_not_be_empty(cls, v):
        patterns = [v] if isinstance(v, str) else v
        if not [pattern for pattern in patterns if pattern.strip()]:
            raise ValueError('sourceFiles must name at least one pattern')
        return v

    @field_validator('persist_format')
    @classmethod
    def format_must_be_known(cls, v):
        if v is not None and v not in PERSIST_FORMATS:
            raise ValueError(f'persistFormat must be one of: {list(PERSIST_FORMATS)}')
        return v

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "BuildConfig":
        config_path = Path(path)
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Could not read build config {config_path}: {e}") from e
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid build config {config_path}: {e}") from e

    @property
    def patterns(self) -> List[str]:
        patterns = [self.source_files] if isinstance(self.source_files, str) else self.source_files
        return [pattern for pattern in patterns if pattern.strip()]

    @property
    def index_schema(self) -> IndexSchema:
        if self.schema_fields is None:
            return DEFAULT_SCHEMA
        try:
            return IndexSchema.from_dict(self.schema_fields)
        except SchemaMismatchError as e:
            raise ConfigurationError(f"Invalid schema in build config: {e}") from e

    def output_path(self, base_dir: Union[str, Path]) -> Path:
        name = self.output_file_name
        if not name.endswith(".zip"):
            name = f"{name}.zip"
        return Path(base_dir) / self.output_dir / name

    def source_paths(self, base_dir: Union[str, Path]) -> List[Path]:
        """Files matched by the source patterns, sorted and de-duplicated."""
        folder = Path(base_dir) / self.source_folder
        if not folder.is_dir():
            raise ConfigurationError(f"Source folder not found: {folder}")
        matched = {path for pattern in self.patterns for path in folder.glob(pattern) if path.is_file()}
        return sorted(matched)


def load_corpus(paths: Iterable[Union[str, Path]]) -> List[dict]:
    """Concatenate the JSON arrays stored in ``paths``, in order."""
    corpus: List[dict] = []
    for path in paths:
        source = Path(path)
        try:
            items = json.loads(source.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Could not read corpus file {source}: {e}") from e
        if not isinstance(items, list):
            raise ConfigurationError(f"Expected a JSON array in {source}")
        corpus.extend(items)
    return corpus
