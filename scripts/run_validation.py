#!/usr/bin/env python3
"""
Interactive validation runner.

Lists the named JSON configs in the validation config directory, asks the
operator to pick one and validates the archive it points at. A config looks
like::

    {
      "archivePath": "dist/quotes.zip",
      "queries": [{"query": "...", "expectedPath": "..."}],
      "search": {"mode": "vector", "tolerance": 0.2},
      "schema": {"id": "string", "quote": "string", "author": "string", "embeddings": "vector[512]"}
    }

``queries`` may also be a path to a queries JSON file. ``schema`` is the
{field: type} mapping the archive must declare (default: id, pageId, url,
text, embedding vector[512]). Relative paths are resolved against the
working directory.
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from ragindex.core import config
from ragindex.core.errors import ConfigurationError, RagIndexError
from ragindex.core.validation import ValidationRunConfig, format_report, validate_archive


def list_configs(config_dir: Path):
    if not config_dir.is_dir():
        raise ConfigurationError(f"Config directory not found: {config_dir}")
    return sorted(path.name for path in config_dir.iterdir() if path.is_file() and path.suffix.lower() == ".json")


def prompt_config_name(configs):
    if not configs:
        raise ConfigurationError("No config files found")

    print("\nAvailable configs:")
    for position, name in enumerate(configs, 1):
        print(f"  {position}) {name}")

    answer = input("\nSelect a config number: ")
    try:
        selection = int(answer.strip())
    except ValueError:
        selection = 0
    if selection < 1 or selection > len(configs):
        raise ConfigurationError("Invalid selection.")
    return configs[selection - 1]


def main(argv=None):
    parser = argparse.ArgumentParser(description="Pick a validation config and run it")
    parser.add_argument(
        "--config-dir",
        default=config.VALIDATION_CONFIG_DIR,
        help=f"Directory of validation configs (default: {config.VALIDATION_CONFIG_DIR})",
    )
    args = parser.parse_args(argv)

    config_dir = Path(args.config_dir)
    base_dir = Path.cwd()

    try:
        selected = prompt_config_name(list_configs(config_dir))
        run_config = ValidationRunConfig.from_file(config_dir / selected)
        report = asyncio.run(validate_archive(
            run_config.resolve_archive(base_dir),
            run_config.resolve_queries(base_dir),
            run_config.search,
            schema=run_config.index_schema,
        ))
    except RagIndexError as e:
        print(f"❌ {e}")
        return 1

    print(format_report(report))
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
