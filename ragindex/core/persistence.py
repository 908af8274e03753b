"""
Serialization of a document store into a self-describing payload.

Binary layout (all integers little-endian)::

    b"RAGIDX\\0"  magic
    u16           format version
    u32 + bytes   JSON header: schema, document count, vector property, dimension
    u32 + bytes   JSON array of documents without vectors, in index order
    f32 * n * d   vector matrix, one row per document

The JSON layout carries the same header fields plus documents with inline
vectors. Lexical structures are derived from document text and are rebuilt on
restore, so they are not persisted.
"""

import json
import struct
from typing import List, Tuple

import numpy as np

from ..vector.types import IndexSchema, SearchableDocument
from .errors import ArchiveFormatError, ConfigurationError, DocumentValidationError, SchemaMismatchError

BINARY_MAGIC = b"RAGIDX\x00"
FORMAT_VERSION = 1
JSON_FORMAT_TAG = "ragindex.json"
PERSIST_FORMATS = ("binary", "json")

_PREAMBLE = struct.Struct("<HI")
_LENGTH = struct.Struct("<I")


def _header(schema: IndexSchema, count: int) -> dict:
    return {
        "schema": schema.to_dict(),
        "count": count,
        "vectorProperty": schema.vector_property,
        "dimension": schema.dimension,
    }


def serialize_index(store, fmt: str = "binary") -> bytes:
    """Serialize a DocumentStore into ``binary`` or ``json`` payload bytes."""
    schema = store.schema
    documents = store.documents

    if fmt == "json":
        payload = {"format": JSON_FORMAT_TAG, "version": FORMAT_VERSION}
        payload.update(_header(schema, len(documents)))
        payload["documents"] = [doc.to_dict(schema.vector_property) for doc in documents]
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")

    if fmt != "binary":
        raise ConfigurationError(f"Unknown persist format '{fmt}', expected one of {PERSIST_FORMATS}")

    header = json.dumps(_header(schema, len(documents)), separators=(",", ":")).encode("utf-8")
    body = json.dumps([doc.to_dict() for doc in documents], ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    if documents:
        matrix = np.vstack([np.asarray(doc.embedding, dtype="<f4") for doc in documents])
    else:
        matrix = np.zeros((0, schema.dimension), dtype="<f4")

    return b"".join([
        BINARY_MAGIC,
        _PREAMBLE.pack(FORMAT_VERSION, len(header)),
        header,
        _LENGTH.pack(len(body)),
        body,
        matrix.astype("<f4").tobytes(),
    ])


def detect_format(payload: bytes) -> str:
    """Sniff the payload: binary magic, or a JSON object."""
    if payload.startswith(BINARY_MAGIC):
        return "binary"
    stripped = payload.lstrip(b" \t\r\n")
    if stripped[:1] == b"{":
        return "json"
    raise ArchiveFormatError("Unrecognized index payload (neither binary nor JSON)")


def _parse_schema(header: dict) -> IndexSchema:
    schema = IndexSchema.from_dict(header.get("schema") or {})
    if header.get("dimension") not in (None, schema.dimension):
        raise SchemaMismatchError("Header dimension disagrees with schema vector field")
    return schema


def _read_json(data: bytes, what: str):
    try:
        return json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ArchiveFormatError(f"Malformed {what}: {e}") from e


def _deserialize_binary(payload: bytes) -> Tuple[IndexSchema, List[SearchableDocument]]:
    offset = len(BINARY_MAGIC)
    try:
        version, header_len = _PREAMBLE.unpack_from(payload, offset)
        offset += _PREAMBLE.size
        header = _read_json(payload[offset:offset + header_len], "index header")
        offset += header_len
        (body_len,) = _LENGTH.unpack_from(payload, offset)
        offset += _LENGTH.size
    except struct.error as e:
        raise ArchiveFormatError(f"Truncated index payload: {e}") from e

    if version != FORMAT_VERSION:
        raise ArchiveFormatError(f"Unsupported index format version {version}")
    if not isinstance(header, dict):
        raise ArchiveFormatError("Index header must be an object")

    schema = _parse_schema(header)
    raw_docs = _read_json(payload[offset:offset + body_len], "document block")
    offset += body_len
    if not isinstance(raw_docs, list) or len(raw_docs) != header.get("count"):
        raise ArchiveFormatError("Document block does not match the header count")

    expected = len(raw_docs) * schema.dimension * 4
    vector_bytes = payload[offset:]
    if len(vector_bytes) != expected:
        raise ArchiveFormatError(f"Vector block has {len(vector_bytes)} bytes, expected {expected}")
    matrix = np.frombuffer(vector_bytes, dtype="<f4").reshape(len(raw_docs), schema.dimension)

    documents = []
    for row, raw in zip(matrix, raw_docs):
        document = SearchableDocument.from_dict(raw, schema.vector_property)
        documents.append(document.with_embedding(row.astype(np.float32)))
    return schema, documents


def _deserialize_json(payload: bytes) -> Tuple[IndexSchema, List[SearchableDocument]]:
    data = _read_json(payload, "JSON index payload")
    if not isinstance(data, dict) or data.get("format") != JSON_FORMAT_TAG:
        raise ArchiveFormatError("JSON payload is not a ragindex index")
    if data.get("version") != FORMAT_VERSION:
        raise ArchiveFormatError(f"Unsupported index format version {data.get('version')}")

    schema = _parse_schema(data)
    raw_docs = data.get("documents")
    if not isinstance(raw_docs, list) or len(raw_docs) != data.get("count"):
        raise ArchiveFormatError("Document list does not match the header count")
    return schema, [SearchableDocument.from_dict(raw, schema.vector_property) for raw in raw_docs]


def deserialize_payload(payload: bytes) -> Tuple[IndexSchema, List[SearchableDocument]]:
    """Decode a payload into its declared schema and ordered documents."""
    fmt = detect_format(payload)
    try:
        if fmt == "binary":
            return _deserialize_binary(payload)
        return _deserialize_json(payload)
    except DocumentValidationError as e:
        raise ArchiveFormatError(f"Malformed document in {fmt} payload: {e}") from e
