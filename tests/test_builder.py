"""
Tests for the index builder and build configs.
"""

import asyncio
import json
from unittest.mock import MagicMock

import pytest

from ragindex.core.archive import decompress_sync
from ragindex.core.builder import BuildConfig, IndexBuilder, build, load_corpus, write_archive
from ragindex.core.errors import ConfigurationError, DocumentValidationError, EmbeddingProviderError
from ragindex.core.persistence import deserialize_payload
from ragindex.vector.embeddings import DeterministicHashEmbedding
from ragindex.vector.types import DEFAULT_SCHEMA

from conftest import DOCS, QUOTES, QUOTES_SCHEMA


def test_build_produces_gzip_of_schema_tagged_payload(quotes_archive):
    """Test the archive decompresses to the quotes schema and documents in input order."""
    schema, documents = deserialize_payload(decompress_sync(quotes_archive))

    assert schema == QUOTES_SCHEMA
    assert [doc.id for doc in documents] == [quote["id"] for quote in QUOTES]
    assert all(doc.embedding.shape == (512,) for doc in documents)
    assert documents[4].extra == {"quote": QUOTES[4]["quote"], "author": "Helen Keller"}


def test_build_embeds_concatenated_properties(embedder):
    provider = MagicMock(wraps=embedder)
    builder = IndexBuilder(provider=provider, schema=QUOTES_SCHEMA, embed_properties=("quote", "author"))

    asyncio.run(builder.build(QUOTES[:1]))

    provider.embed_text.assert_called_once_with(f"{QUOTES[0]['quote']} Albert Einstein")


def test_build_is_deterministic(quotes_builder):
    assert asyncio.run(quotes_builder.build(QUOTES)) == asyncio.run(quotes_builder.build(QUOTES))


def test_build_concurrency_keeps_input_order(embedder):
    """Test bounded parallel embedding yields the same archive as a sequential build."""
    sequential = IndexBuilder(provider=embedder, max_concurrency=1)
    parallel = IndexBuilder(provider=embedder, max_concurrency=4)

    assert asyncio.run(parallel.build(DOCS)) == asyncio.run(sequential.build(DOCS))


def test_embedding_failure_aborts_build_and_names_document(tmp_path):
    """Test one failing document aborts the whole build and no file is written."""
    embedder = DeterministicHashEmbedding()

    def flaky(text):
        if "flex" in text.lower():
            raise RuntimeError("rate limited")
        return embedder.embed_text(text)

    provider = MagicMock()
    provider.embed_text.side_effect = flaky
    builder = IndexBuilder(provider=provider)
    output = tmp_path / "out" / "index.zip"

    with pytest.raises(EmbeddingProviderError) as excinfo:
        asyncio.run(builder.build_to_file(DOCS, output))

    assert excinfo.value.document_id == "doc-flex"
    assert not output.exists()
    assert not output.parent.exists() or not any(output.parent.iterdir())


def test_build_to_file_reports_sizes(tmp_path, embedder):
    builder = IndexBuilder(provider=embedder)
    output = tmp_path / "dist" / "docs.zip"

    result = asyncio.run(builder.build_to_file(DOCS, output))

    assert output.read_bytes() == result.archive
    assert result.document_count == len(DOCS)
    assert result.archive_size < result.payload_size
    assert 0 < result.space_saved_percent < 100


def test_json_persist_format(embedder):
    archive = asyncio.run(build(DOCS, provider=embedder, persist_format="json"))

    payload = decompress_sync(archive)
    assert json.loads(payload)["format"] == "ragindex.json"
    schema, documents = deserialize_payload(payload)
    assert schema == DEFAULT_SCHEMA
    assert len(documents) == len(DOCS)


def test_builder_rejects_unknown_embed_property(embedder):
    with pytest.raises(ConfigurationError, match="author"):
        IndexBuilder(provider=embedder, embed_properties=("text", "author"))


def test_builder_rejects_unknown_format(embedder):
    with pytest.raises(ConfigurationError):
        IndexBuilder(provider=embedder, persist_format="xml")


def test_duplicate_ids_abort_build(embedder):
    with pytest.raises(DocumentValidationError):
        asyncio.run(build([DOCS[0], DOCS[0]], provider=embedder))


def test_write_archive_replaces_atomically(tmp_path):
    target = tmp_path / "index.zip"
    target.write_bytes(b"old")

    write_archive(target, b"new archive")

    assert target.read_bytes() == b"new archive"
    assert [path.name for path in tmp_path.iterdir()] == ["index.zip"]


def test_build_config_aliases_and_defaults(tmp_path):
    config_path = tmp_path / "build.json"
    config_path.write_text(json.dumps({
        "outputFileName": "quotes",
        "sourceFiles": "*.json",
        "schema": {"id": "string", "quote": "string", "author": "string", "embeddings": "vector[512]"},
        "embedProperties": ["quote", "author"],
    }))

    config = BuildConfig.from_file(config_path)

    assert config.index_schema == QUOTES_SCHEMA
    assert config.embed_properties == ["quote", "author"]
    assert config.patterns == ["*.json"]
    assert config.output_path(tmp_path) == tmp_path / "dist" / "quotes.zip"
    assert config.queries == []


@pytest.mark.parametrize("data", [
    {"sourceFiles": []},
    {"persistFormat": "yaml"},
    {"schema": {"id": "string"}},
])
def test_build_config_errors(tmp_path, data):
    config_path = tmp_path / "build.json"
    config_path.write_text(json.dumps(data))

    with pytest.raises(ConfigurationError):
        BuildConfig.from_file(config_path).index_schema


def test_build_config_source_paths_and_corpus(tmp_path):
    source = tmp_path / "corpus"
    (source / "nested").mkdir(parents=True)
    (source / "b.json").write_text(json.dumps(QUOTES[:2]))
    (source / "nested" / "a.json").write_text(json.dumps(QUOTES[2:]))
    (source / "notes.txt").write_text("ignored")
    config = BuildConfig(sourceFolder="corpus", sourceFiles=["**/*.json", "*.json"])

    paths = config.source_paths(tmp_path)

    assert [path.name for path in paths] == ["b.json", "a.json"]
    assert [item["id"] for item in load_corpus(paths)] == [quote["id"] for quote in QUOTES[:2] + QUOTES[2:]]


def test_load_corpus_requires_arrays(tmp_path):
    path = tmp_path / "obj.json"
    path.write_text(json.dumps({"id": "x"}))

    with pytest.raises(ConfigurationError, match="array"):
        load_corpus([path])
