"""
Shared fixtures: an offline embedder, the quotes corpus and a small design-docs corpus.
"""

import asyncio

import pytest

from ragindex.core.archive import SyncArchiveCodec
from ragindex.core.builder import IndexBuilder
from ragindex.core.restorer import restore
from ragindex.vector.embeddings import DeterministicHashEmbedding
from ragindex.vector.index import SimpleInMemoryVectorStore
from ragindex.vector.types import DEFAULT_SCHEMA, IndexSchema

QUOTES_SCHEMA = IndexSchema(fields=("id", "quote", "author"), vector_property="embeddings", dimension=512)

QUOTES = [
    {
        "id": "einstein-1",
        "quote": "Life is like riding a bicycle. To keep your balance you must keep moving.",
        "author": "Albert Einstein",
    },
    {
        "id": "curie-1",
        "quote": "Nothing in life is to be feared, it is only to be understood.",
        "author": "Marie Curie",
    },
    {
        "id": "angelou-1",
        "quote": "If you do not like something, change it. If you cannot change it, change your attitude.",
        "author": "Maya Angelou",
    },
    {
        "id": "lovelace-1",
        "quote": "That brain of mine is something more than merely mortal; as time will show.",
        "author": "Ada Lovelace",
    },
    {
        "id": "keller-1",
        "quote": "Keep your face to the sunshine and you cannot see a shadow.",
        "author": "Helen Keller",
    },
]

KELLER_QUERY = "Keep your face to the sunshine and you cannot see"

DOCS = [
    {
        "id": "doc-boards",
        "pageId": "guide/boards",
        "url": "https://help.penpot.app/user-guide/boards.html",
        "text": "Boards are containers for designs. Create a board with the B key and resize it freely.",
    },
    {
        "id": "doc-intro",
        "pageId": "guide/intro",
        "url": "https://help.penpot.app/user-guide/introduction.html",
        "text": "Welcome to the user guide. This introduction explains workspaces, projects and teams.",
    },
    {
        "id": "doc-flex",
        "pageId": "guide/flex-layout",
        "url": "https://help.penpot.app/user-guide/flexible-layouts.html",
        "text": "Flex layout arranges layers in rows or columns with gap, padding and alignment controls.",
    },
    {
        "id": "doc-export",
        "pageId": "guide/export",
        "url": "https://help.penpot.app/user-guide/exporting.html",
        "text": "Export boards and layers as PNG, JPEG, SVG or PDF from the export panel.",
    },
]


@pytest.fixture(autouse=True)
def offline_env(monkeypatch):
    """Keep every test on the offline providers regardless of the caller's environment."""
    monkeypatch.setenv("EMBED_PROVIDER", "hash")
    monkeypatch.setenv("VECTOR_PROVIDER", "memory")
    monkeypatch.setenv("ARCHIVE_CODEC", "sync")


@pytest.fixture
def embedder():
    return DeterministicHashEmbedding(dimension=512)


@pytest.fixture
def quotes_builder(embedder):
    return IndexBuilder(
        provider=embedder,
        schema=QUOTES_SCHEMA,
        embed_properties=("quote", "author"),
        codec=SyncArchiveCodec(),
        vector_store_factory=SimpleInMemoryVectorStore,
    )


@pytest.fixture
def quotes_archive(quotes_builder):
    return asyncio.run(quotes_builder.build(QUOTES))


@pytest.fixture
def quotes_index(quotes_archive, embedder):
    return asyncio.run(restore(quotes_archive, schema=QUOTES_SCHEMA, provider=embedder))


@pytest.fixture
def docs_archive(embedder):
    builder = IndexBuilder(provider=embedder, schema=DEFAULT_SCHEMA, codec=SyncArchiveCodec())
    return asyncio.run(builder.build(DOCS))


@pytest.fixture
def docs_index(docs_archive, embedder):
    return asyncio.run(restore(docs_archive, provider=embedder))
