#!/usr/bin/env python3
"""
Validate a persisted index archive against a file of regression queries.

Exit code 0 only when every query finds its expected identifier among its hits.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from ragindex.core.errors import ConfigurationError, RagIndexError, SchemaMismatchError
from ragindex.core.validation import format_report, load_queries, validate_archive
from ragindex.vector.types import DEFAULT_SCHEMA, IndexSchema

USAGE_EPILOG = """
queries.json format:
  [
    { "query": "flowbite solid address book", "expectedPath": "flowbite#solid__1" }
  ]

Environment variables:
- EMBED_PROVIDER=hash|sentence-transformers|openrouter (query embeddings)
- ARCHIVE_CODEC=sync|streaming
- VECTOR_PROVIDER=memory|faiss
"""


def build_parser():
    parser = argparse.ArgumentParser(
        description="Restore an index archive and check that each query finds its expected document",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=USAGE_EPILOG,
    )
    parser.add_argument("archive_path", nargs="?", help="Path to the gzip index archive")
    parser.add_argument("queries_path", nargs="?", help="Path to the JSON array of query cases")
    parser.add_argument("--mode", choices=["vector", "hybrid", "fulltext"], help="Search mode (default: hybrid)")
    parser.add_argument("--limit", type=int, help="Maximum hits per query (default: 5)")
    parser.add_argument("--tolerance", type=float, help="Vector mode: maximum dissimilarity (default: 0.4)")
    parser.add_argument("--similarity", type=float, help="Hybrid mode: minimum combined score (default: 0.85)")
    parser.add_argument("--property", help="Vector mode: vector field to search (default: schema vector field)")
    parser.add_argument("--schema", help="JSON file with the {field: type} schema the archive must declare")
    return parser


def load_schema(path):
    if path is None:
        return DEFAULT_SCHEMA
    try:
        return IndexSchema.from_dict(json.loads(Path(path).read_text(encoding="utf-8")))
    except (OSError, ValueError, SchemaMismatchError) as e:
        raise ConfigurationError(f"Invalid schema file {path}: {e}") from e


def search_overrides(args) -> dict:
    names = ("mode", "limit", "tolerance", "similarity", "property")
    return {name: getattr(args, name) for name in names if getattr(args, name) is not None}


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.archive_path or not args.queries_path:
        parser.print_help()
        return 1

    archive_path = Path(args.archive_path).resolve()
    queries_path = Path(args.queries_path).resolve()

    try:
        schema = load_schema(args.schema)
        queries = load_queries(queries_path)
        report = asyncio.run(validate_archive(archive_path, queries, search_overrides(args), schema=schema))
    except RagIndexError as e:
        print(f"❌ {e}")
        return 1

    print(format_report(report))
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
