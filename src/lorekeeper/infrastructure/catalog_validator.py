"""Validate a story catalog file.

Usage examples:
    python -m lorekeeper.infrastructure.catalog_validator
    python -m lorekeeper.infrastructure.catalog_validator --path data/story/catalog.json
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Sequence

from lorekeeper.infrastructure.catalog_loader import DEFAULT_CATALOG_PATH, resolve_catalog_path, validate_catalog_payload


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Validate story catalog JSON schema and cross references")
    parser.add_argument(
        "--path",
        default=DEFAULT_CATALOG_PATH,
        help="Path to story catalog JSON file",
    )
    return parser


def validate_catalog_file(path: str | Path) -> list[str]:
    source = resolve_catalog_path(path)
    if not source.exists():
        return [f"File not found: {source}"]

    try:
        payload = json.loads(source.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        return [f"Invalid JSON: {exc}"]

    return validate_catalog_payload(payload)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    errors = validate_catalog_file(args.path)
    if errors:
        print(f"Story catalog invalid ({len(errors)} errors):")
        for message in errors:
            print(f"- {message}")
        return 1

    print("Story catalog valid.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
