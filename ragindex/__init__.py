"""
ragindex: build, persist, restore, query and regression-test a small
semantic/lexical retrieval index.

- ``ragindex.vector`` holds the document store engine (schema, BM25 lexical
  index, vector backends, embedding providers and the embedding hook).
- ``ragindex.core`` holds the archive codec, persistence format, builder,
  restorer, search service and validation harness.
"""

__version__ = "1.0.0"
