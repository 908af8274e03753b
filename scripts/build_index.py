#!/usr/bin/env python3
"""
Config-driven index build.

Loads every JSON array matched by the config's source patterns, embeds and
indexes the documents, writes the gzip archive and then runs the config's
queries against the freshly written archive.

Example config::

    {
      "outputDir": "./dist",
      "outputFileName": "quotes",
      "sourceFolder": "./corpus",
      "sourceFiles": ["quotes/*.json"],
      "schema": {"id": "string", "text": "string", "author": "string", "embedding": "vector[512]"},
      "embedProperties": ["text", "author"],
      "queries": [{"query": "who was blind and deaf", "expectedPath": "keller-1"}],
      "search": {"mode": "vector", "tolerance": 0.3}
    }

Without a ``search`` block the queries run as fulltext smoke searches.
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from ragindex.core.builder import BuildConfig, IndexBuilder, load_corpus
from ragindex.core.errors import RagIndexError
from ragindex.core.validation import format_report, validate_archive

SMOKE_SEARCH = {"mode": "fulltext"}


def main(argv=None):
    parser = argparse.ArgumentParser(description="Build a persisted index archive from a JSON config")
    parser.add_argument("config_path", nargs="?", help="Path to the build config (.json)")
    parser.add_argument(
        "--skip-queries",
        action="store_true",
        help="Do not run the config's queries after building",
    )
    args = parser.parse_args(argv)

    if not args.config_path:
        print("❌ Missing config file path.")
        parser.print_usage()
        return 1

    base_dir = Path.cwd()
    try:
        build_config = BuildConfig.from_file(Path(args.config_path))
        schema = build_config.index_schema
        files = build_config.source_paths(base_dir)
        if not files:
            print(f"❌ No files matched {', '.join(build_config.patterns)} in {base_dir / build_config.source_folder}")
            return 1

        print(f"📦 Loading {len(files)} source files...")
        corpus = load_corpus(files)

        builder = IndexBuilder(
            schema=schema,
            embed_properties=build_config.embed_properties,
            persist_format=build_config.persist_format,
        )
        output_path = build_config.output_path(base_dir)
        result = asyncio.run(builder.build_to_file(corpus, output_path))
    except RagIndexError as e:
        print(f"❌ Error: {e}")
        return 1

    print(f"✅ Inserted {result.document_count} records")
    print(f"✅ Persisted file saved: {output_path}")
    print(f"📄 Size: {result.archive_size} bytes (compressed)")
    print(f"📊 Original: {result.payload_size} bytes ({result.space_saved_percent:.1f}% saved)")

    if args.skip_queries:
        return 0
    if not build_config.queries:
        print("⚠️  No queries configured. Skipping test searches.")
        return 0

    try:
        report = asyncio.run(validate_archive(
            output_path,
            build_config.queries,
            build_config.search or SMOKE_SEARCH,
            schema=schema,
            provider=builder.provider,
        ))
    except RagIndexError as e:
        print(f"❌ Error: {e}")
        return 1

    print(format_report(report))
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
