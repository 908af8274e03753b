"""
Search service: option parsing and the ``search(index, query, options)`` entry point.
"""

from typing import Any, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from ..vector.store import DocumentStore
from ..vector.types import SearchHit, SearchMode, SearchParams
from .errors import ConfigurationError


class SearchOptions(BaseModel):
    """Caller-facing search options. Absent fields keep their defaults."""

    model_config = ConfigDict(frozen=True)

    mode: SearchMode = SearchMode.HYBRID
    limit: int = 5
    tolerance: float = 0.4
    similarity: float = 0.85
    property: Optional[str] = None

    @field_validator('limit')
    @classmethod
    def limit_must_be_positive(cls, v):
        if v < 1:
            raise ValueError('limit must be at least 1')
        return v

    @field_validator('tolerance')
    @classmethod
    def tolerance_must_not_be_negative(cls, v):
        if v < 0:
            raise ValueError('tolerance cannot be negative')
        return v

    @field_validator('similarity')
    @classmethod
    def similarity_must_be_a_fraction(cls, v):
        if not 0 <= v <= 1:
            raise ValueError('similarity must be between 0 and 1')
        return v

    def to_params(self, query: str) -> SearchParams:
        return SearchParams(
            term=query,
            mode=self.mode,
            property=self.property,
            limit=self.limit,
            tolerance=self.tolerance,
            similarity=self.similarity,
        )


def check_property(index: DocumentStore, options: SearchOptions) -> None:
    """Reject a ``property`` override the index has no vector field for."""
    if options.property not in (None, index.schema.vector_property):
        raise ConfigurationError(
            f"Unknown vector property '{options.property}' (index vector field is '{index.schema.vector_property}')"
        )


def parse_search_overrides(overrides: Optional[Mapping[str, Any]]) -> SearchOptions:
    """Build SearchOptions from a loosely typed ``search`` config block."""
    if overrides is None:
        return SearchOptions()
    if isinstance(overrides, SearchOptions):
        return overrides
    if not isinstance(overrides, Mapping):
        raise ConfigurationError(f"Search options must be an object, got {type(overrides).__name__}")
    try:
        return SearchOptions(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid search options: {e}") from e


async def search(
    index: DocumentStore,
    query: str,
    options: Union[SearchOptions, Mapping[str, Any], None] = None,
) -> List[SearchHit]:
    """Search a restored index, most relevant first.

    The index's search hook embeds ``query``; vector mode keeps hits within
    ``tolerance`` of the nearest match, hybrid mode keeps hits whose combined
    score reaches ``similarity``. An empty list is a valid outcome.
    """
    options = parse_search_overrides(options)
    check_property(index, options)
    results = await index.search(options.to_params(query))
    return results.hits
