"""
Core records shared by the document store, the persistence layer and the search service.
"""

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np

from ..core.errors import DocumentValidationError, SchemaMismatchError

VECTOR_TYPE_RE = re.compile(r"^vector\[(\d+)\]$")

# Schema field name -> SearchableDocument attribute
_NAMED_FIELDS = {"id": "id", "text": "text", "pageId": "page_id", "url": "url"}


class SearchMode(str, Enum):
    """Scoring strategy for a search."""

    VECTOR = "vector"
    HYBRID = "hybrid"
    FULLTEXT = "fulltext"


@dataclass(frozen=True)
class IndexSchema:
    """Field layout of an index: string fields plus one fixed-length vector field.

    Serialized as a flat mapping, e.g. ``{"id": "string", "text": "string",
    "embedding": "vector[512]"}``.
    """

    fields: Tuple[str, ...] = ("id", "pageId", "url", "text")
    vector_property: str = "embedding"
    dimension: int = 512

    def __post_init__(self):
        if "id" not in self.fields:
            raise SchemaMismatchError("Schema must declare an 'id' field")
        if self.vector_property in self.fields:
            raise SchemaMismatchError(f"Vector property '{self.vector_property}' clashes with a string field")
        if self.dimension <= 0:
            raise SchemaMismatchError(f"Vector dimension must be positive, got {self.dimension}")

    def matches(self, other: "IndexSchema") -> bool:
        """Same field set, vector property and dimension; field order is ignored."""
        return (
            set(self.fields) == set(other.fields)
            and self.vector_property == other.vector_property
            and self.dimension == other.dimension
        )

    @property
    def lexical_fields(self) -> Tuple[str, ...]:
        """String fields covered by the lexical index."""
        return tuple(name for name in self.fields if name != "id")

    def to_dict(self) -> Dict[str, str]:
        data = {name: "string" for name in self.fields}
        data[self.vector_property] = f"vector[{self.dimension}]"
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IndexSchema":
        """Parse a flat ``{field: type}`` mapping with exactly one vector field."""
        if not isinstance(data, Mapping) or not data:
            raise SchemaMismatchError("Schema must be a non-empty mapping")

        fields = []
        vector_property = None
        dimension = None
        for name, kind in data.items():
            if kind == "string":
                fields.append(name)
                continue
            match = VECTOR_TYPE_RE.match(str(kind))
            if not match:
                raise SchemaMismatchError(f"Unsupported type '{kind}' for field '{name}'")
            if vector_property is not None:
                raise SchemaMismatchError("Schema declares more than one vector field")
            vector_property = name
            dimension = int(match.group(1))

        if vector_property is None:
            raise SchemaMismatchError("Schema must declare a vector field")
        return cls(fields=tuple(fields), vector_property=vector_property, dimension=dimension)


DEFAULT_SCHEMA = IndexSchema()


@dataclass(frozen=True)
class SearchableDocument:
    """A corpus entry as stored in the index.

    Identity is ``id``. ``url`` and ``page_id`` are alternate identifiers used
    only when matching validation expectations. Schema fields other than the
    four named ones live in ``extra``.
    """

    id: str
    text: str = ""
    page_id: Optional[str] = None
    url: Optional[str] = None
    embedding: Optional[np.ndarray] = field(default=None, compare=False, repr=False)
    extra: Mapping[str, str] = field(default_factory=dict)

    def get(self, name: str) -> Optional[str]:
        """Return a string field by its schema name."""
        if name in _NAMED_FIELDS:
            return getattr(self, _NAMED_FIELDS[name])
        return self.extra.get(name)

    def field_names(self) -> Tuple[str, ...]:
        """Schema names of the string fields this document populates."""
        names = [name for name in _NAMED_FIELDS if self.get(name) not in (None, "")]
        names.extend(self.extra)
        return tuple(names)

    def with_embedding(self, embedding: np.ndarray) -> "SearchableDocument":
        return replace(self, embedding=embedding)

    def to_dict(self, vector_property: Optional[str] = None) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id}
        if self.page_id is not None:
            data["pageId"] = self.page_id
        if self.url is not None:
            data["url"] = self.url
        data["text"] = self.text
        data.update(self.extra)
        if vector_property is not None and self.embedding is not None:
            data[vector_property] = [float(value) for value in self.embedding]
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], vector_property: str = "embedding") -> "SearchableDocument":
        """Build a document from a corpus object; unknown string keys go to ``extra``."""
        if not isinstance(data, Mapping):
            raise DocumentValidationError(f"Document must be an object, got {type(data).__name__}")
        doc_id = data.get("id")
        if doc_id is None or str(doc_id).strip() == "":
            raise DocumentValidationError("Document is missing an 'id'")

        embedding = data.get(vector_property)
        if embedding is not None:
            embedding = np.asarray(embedding, dtype=np.float32)

        extra = {
            key: str(value)
            for key, value in data.items()
            if key not in _NAMED_FIELDS and key != vector_property and value is not None
        }
        page_id = data.get("pageId")
        url = data.get("url")
        return cls(
            id=str(doc_id),
            text=str(data.get("text") or ""),
            page_id=str(page_id) if page_id is not None else None,
            url=str(url) if url is not None else None,
            embedding=embedding,
            extra=extra,
        )


@dataclass(frozen=True)
class SearchHit:
    """A ranked search result."""

    id: str
    """Result identifier (the document id)"""

    score: float
    """Relevance score; higher is better"""

    document: SearchableDocument
    """The matched document"""


@dataclass
class SearchParams:
    """Parameters for a single document store search.

    ``vector`` is normally left empty and filled by the store's search hook.
    """

    term: str = ""
    mode: Optional[SearchMode] = None
    vector: Optional[np.ndarray] = None
    property: Optional[str] = None
    limit: int = 5
    tolerance: float = 0.4
    similarity: float = 0.85
    text_weight: float = 0.5
    vector_weight: float = 0.5


@dataclass
class SearchResults:
    """Ranked hits plus the number of qualifying documents before truncation."""

    hits: list
    count: int
    elapsed_ms: float
