"""
Validation harness: runs (query, expected identifier) cases against a restored
index and reports pass/fail per case.

An expected identifier matches a hit when any of these hold:

- document url equals, or contains, the expected value
- pageId equals the expected value or its normalized form
- document url contains the normalized form
- document id or hit id equals the expected value or its normalized form

The normalized form drops one trailing ``.md``/``.html``/``.htm`` (any case),
so ``guide/intro.md`` matches a document whose pageId is ``guide/intro``.
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..util.logging import logger
from ..vector.store import DocumentStore
from ..vector.types import DEFAULT_SCHEMA, IndexSchema, SearchHit, SearchMode
from .errors import ConfigurationError, EmbeddingProviderError, SchemaMismatchError
from .restorer import restore_file
from .search_service import SearchOptions, check_property, parse_search_overrides, search

EXPECTED_SUFFIX_RE = re.compile(r"\.(md|html?)$", re.IGNORECASE)
PREVIEW_CHARS = 120


class QueryTestCase(BaseModel):
    """One regression case: a query and the identifier expected among its hits."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    query: str
    expected_path: str = Field(alias="expectedPath")

    @field_validator('query', 'expected_path')
    @classmethod
    def must_not_be_empty(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('value cannot be empty')
        return v

    def to_dict(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True)


def normalize_expected(value: Optional[str]) -> str:
    """Strip one trailing .md/.html/.htm extension."""
    return EXPECTED_SUFFIX_RE.sub("", str(value or ""))


def _coerce_text(value: Any) -> str:
    return str(value or "").strip()


def normalize_queries(raw_queries: Any) -> List[QueryTestCase]:
    """Turn loosely typed query entries into QueryTestCases.

    Non-object entries and entries with an empty query or expected path are
    dropped. A non-list input is a ConfigurationError.
    """
    if not isinstance(raw_queries, (list, tuple)):
        raise ConfigurationError(f"Queries must be an array, got {type(raw_queries).__name__}")

    cases = []
    for item in raw_queries:
        if isinstance(item, QueryTestCase):
            cases.append(item)
            continue
        if not isinstance(item, Mapping):
            continue
        query = _coerce_text(item.get("query"))
        expected = _coerce_text(item.get("expectedPath"))
        if query and expected:
            cases.append(QueryTestCase(query=query, expected_path=expected))
    return cases


def load_queries(path: Union[str, Path]) -> List[QueryTestCase]:
    """Read a JSON array of ``{query, expectedPath}`` objects."""
    queries_path = Path(path)
    try:
        raw = json.loads(queries_path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Queries file not found: {queries_path}") from e
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not read queries file {queries_path}: {e}") from e
    return normalize_queries(raw)


def hit_matches(hit: SearchHit, expected: str) -> bool:
    document = hit.document
    url = document.url or ""
    page_id = document.page_id or ""
    doc_id = document.id or ""
    hit_id = hit.id or ""
    normalized = normalize_expected(expected)
    return (
        url == expected
        or expected in url
        or page_id == expected
        or page_id == normalized
        or normalized in url
        or doc_id == expected
        or doc_id == normalized
        or hit_id == expected
        or hit_id == normalized
    )


def match_hits(hits: Iterable[SearchHit], expected: str) -> bool:
    """True if any hit satisfies an identifier predicate for ``expected``."""
    return any(hit_matches(hit, expected) for hit in hits)


def candidate_id(hit: SearchHit) -> str:
    document = hit.document
    return document.id or hit.id or document.url or document.page_id or "unknown"


@dataclass
class CaseResult:
    """Outcome of one validation case."""

    query: str
    expected_path: str
    passed: bool
    hits: List[SearchHit] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def candidates(self) -> List[str]:
        return [candidate_id(hit) for hit in self.hits]


@dataclass
class ValidationReport:
    """Per-case decisions for one harness run."""

    options: SearchOptions
    cases: List[CaseResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.cases)

    @property
    def passed(self) -> int:
        return sum(1 for case in self.cases if case.passed)

    @property
    def failed(self) -> int:
        return self.total - self.passed

    @property
    def ok(self) -> bool:
        return self.failed == 0

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


async def run_case(index: DocumentStore, case: QueryTestCase, options: SearchOptions) -> CaseResult:
    """Search one case; an embedding failure is recorded as the case failing."""
    try:
        hits = await search(index, case.query, options)
    except EmbeddingProviderError as e:
        logger.log_validation_case(case.query, case.expected_path, False, [])
        return CaseResult(case.query, case.expected_path, False, error=str(e))

    passed = match_hits(hits, case.expected_path)
    result = CaseResult(case.query, case.expected_path, passed, hits=list(hits))
    logger.log_validation_case(case.query, case.expected_path, passed, result.candidates)
    return result


async def validate(
    index: DocumentStore,
    test_cases: Iterable[Union[QueryTestCase, Mapping[str, Any]]],
    options: Union[SearchOptions, Mapping[str, Any], None] = None,
) -> ValidationReport:
    """Run every case in order and collect a ValidationReport.

    Raises ConfigurationError, before any search runs, if no usable case is
    supplied or the options name a vector property the index lacks. A failing
    case never stops the run.
    """
    cases = normalize_queries(list(test_cases))
    if not cases:
        raise ConfigurationError("Queries must include at least one item")
    options = parse_search_overrides(options)
    check_property(index, options)

    report = ValidationReport(options=options)
    for case in cases:
        report.cases.append(await run_case(index, case, options))

    logger.log_validation_summary(report.total, report.failed)
    return report


async def validate_archive(
    archive_path: Union[str, Path],
    queries: Any,
    search_overrides: Union[SearchOptions, Mapping[str, Any], None] = None,
    loader=None,
    **restore_kwargs,
) -> ValidationReport:
    """Restore ``archive_path`` and validate ``queries`` against it.

    ``loader`` is an optional IndexLoader; without it the archive is restored
    fresh with ``restore_kwargs``.
    """
    if not archive_path:
        raise ConfigurationError("An archive path is required")
    cases = normalize_queries(queries or [])
    if not cases:
        raise ConfigurationError("Queries must include at least one item")
    options = parse_search_overrides(search_overrides)

    if loader is not None:
        index = await loader.load(archive_path)
    else:
        index = await restore_file(archive_path, **restore_kwargs)
    return await validate(index, cases, options)


class ValidationRunConfig(BaseModel):
    """A named validation run as stored in the validation config directory."""

    model_config = ConfigDict(populate_by_name=True)

    archive_path: str = Field(alias="archivePath")
    queries: Union[List[Any], str]
    search: Optional[Dict[str, Any]] = None
    schema_fields: Optional[Dict[str, str]] = Field(None, alias="schema")

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ValidationRunConfig":
        config_path = Path(path)
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Could not read config {config_path}: {e}") from e
        if isinstance(data, dict) and "archivePath" not in data and "zipPath" in data:
            data["archivePath"] = data.pop("zipPath")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid validation config {config_path}: {e}") from e

    @property
    def index_schema(self) -> IndexSchema:
        """Schema the archive must declare; the default document schema when absent."""
        if self.schema_fields is None:
            return DEFAULT_SCHEMA
        try:
            return IndexSchema.from_dict(self.schema_fields)
        except SchemaMismatchError as e:
            raise ConfigurationError(f"Invalid schema in validation config: {e}") from e

    def resolve_archive(self, base_dir: Union[str, Path]) -> Path:
        archive = Path(self.archive_path)
        return archive if archive.is_absolute() else Path(base_dir) / archive

    def resolve_queries(self, base_dir: Union[str, Path]) -> List[QueryTestCase]:
        if isinstance(self.queries, str):
            queries_path = Path(self.queries)
            if not queries_path.is_absolute():
                queries_path = Path(base_dir) / queries_path
            return load_queries(queries_path)
        return normalize_queries(self.queries)


def format_case(case: CaseResult, options: SearchOptions) -> List[str]:
    """Operator-facing lines for one case."""
    lines = [f"\n🔎 {case.query}"]
    if case.error:
        lines.append(f"   Search failed: {case.error}")
    elif not case.hits:
        lines.append("   No results")
        if options.mode is SearchMode.VECTOR:
            lines.append(f"   Hint: try raising tolerance (current {options.tolerance})")
        elif options.mode is SearchMode.HYBRID:
            lines.append(f"   Hint: try lowering similarity (current {options.similarity})")
    else:
        for position, hit in enumerate(case.hits, 1):
            preview = " ".join(hit.document.text.split())[:PREVIEW_CHARS]
            ellipsis = "..." if len(preview) == PREVIEW_CHARS else ""
            lines.append(f"   {position}. {candidate_id(hit)} ({hit.score:.3f})")
            lines.append(f"      {preview}{ellipsis}")

    if case.passed:
        lines.append(f"✅ Expected: {case.expected_path}")
    else:
        lines.append(f"❌ Expected: {case.expected_path}")
        lines.append(f"   Top paths: {', '.join(case.candidates) or 'no results'}")
    return lines


def format_report(report: ValidationReport) -> str:
    lines: List[str] = []
    for case in report.cases:
        lines.extend(format_case(case, report.options))
    status = "✅" if report.ok else "❌"
    lines.append(f"\n{status} {report.passed}/{report.total} cases passed")
    return "\n".join(lines)
