#!/usr/bin/env python3
"""
Search Index Builder

Builds a prefix-sharded inverted index for static hosting:
- Words from one or more record fields (ASCII tokenization)
- Posting lists de-duplicated and sorted for reproducible output
- One shard file per word prefix ({prefix}.json -> {word: [ids]})

Usage:
    # Index a local JSON array of records
    python -m sitegen.export.build_search_index --input merged.json --base-path vn/posts

    # Custom fields and prefix length
    python -m sitegen.export.build_search_index --input merged.json --base-path vn/posts \\
        --fields title,description,aliases --prefix-length 3
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from sitegen.data_loader import DataSourceError, FileDataSource, load_records
from sitegen.export.tokenizer import DEFAULT_MIN_WORD_LENGTH, tokenize
from sitegen.export.writer import ExportResult, JsonFileWriter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

DEFAULT_FIELDS_TO_INDEX = ("title", "description")
DEFAULT_ID_FIELD = "id"
DEFAULT_PREFIX_LENGTH = 2
DEFAULT_OUTPUT_SUBDIR = "search-index"

# prefix -> word -> sorted ids
SearchIndex = Dict[str, Dict[str, List[Any]]]


@dataclass(frozen=True)
class SearchSettings:
    """Search index options for one dataset."""
    enabled: bool = True
    fields_to_index: Tuple[str, ...] = DEFAULT_FIELDS_TO_INDEX
    id_field: str = DEFAULT_ID_FIELD
    min_word_length: int = DEFAULT_MIN_WORD_LENGTH
    prefix_length: int = DEFAULT_PREFIX_LENGTH
    output_subdir: str = DEFAULT_OUTPUT_SUBDIR

    def validate(self) -> None:
        """
        Reject settings the builder cannot work with.

        Raises:
            ValueError: fields_to_index is empty or id_field is blank
        """
        fields = self.fields_to_index
        if isinstance(fields, str) or not isinstance(fields, (list, tuple)) or not fields:
            raise ValueError("fields_to_index must be a non-empty list of field names")
        if not all(isinstance(name, str) and name for name in fields):
            raise ValueError(f"fields_to_index contains an invalid field name: {list(fields)!r}")
        if not isinstance(self.id_field, str) or not self.id_field:
            raise ValueError("id_field must be a non-empty string")

    def with_defaults(self) -> "SearchSettings":
        """Replace unusable word/prefix lengths with the defaults."""
        settings = self
        if not _is_positive_int(self.min_word_length):
            logger.warning(
                f"Invalid min_word_length {self.min_word_length!r}, "
                f"using {DEFAULT_MIN_WORD_LENGTH}"
            )
            settings = replace(settings, min_word_length=DEFAULT_MIN_WORD_LENGTH)
        if not _is_positive_int(self.prefix_length):
            logger.warning(
                f"Invalid prefix_length {self.prefix_length!r}, "
                f"using {DEFAULT_PREFIX_LENGTH}"
            )
            settings = replace(settings, prefix_length=DEFAULT_PREFIX_LENGTH)
        return settings


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def posting_sort_key(value: Any) -> Tuple[int, Any, str]:
    # Numbers sort numerically and before everything else
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value, "")
    return (1, 0, str(value))


def record_tokens(
    record: Mapping[str, Any],
    fields_to_index: Sequence[str],
    min_word_length: int
) -> Set[str]:
    """Unique tokens across all indexed fields of one record."""
    tokens: Set[str] = set()
    for field_name in fields_to_index:
        value = record.get(field_name)
        if isinstance(value, list):
            for element in value:
                tokens.update(tokenize(element, min_word_length))
        else:
            tokens.update(tokenize(value, min_word_length))
    return tokens


def _build(
    records: Iterable[Mapping[str, Any]],
    settings: SearchSettings
) -> Tuple[SearchIndex, int]:
    """Build the index; returns (index, number of records skipped)."""
    settings.validate()
    settings = settings.with_defaults()
    prefix_length = settings.prefix_length

    postings: Dict[str, Dict[str, Set[Any]]] = {}
    skipped = 0

    for position, record in enumerate(records):
        doc_id = record.get(settings.id_field)
        if doc_id is None:
            logger.warning(f"Document {position} missing '{settings.id_field}' - skipping")
            skipped += 1
            continue
        try:
            hash(doc_id)
        except TypeError:
            logger.warning(f"Document {position} has unusable id {doc_id!r} - skipping")
            skipped += 1
            continue

        for word in record_tokens(record, settings.fields_to_index, settings.min_word_length):
            if len(word) < prefix_length:
                continue
            prefix = word[:prefix_length]
            postings.setdefault(prefix, {}).setdefault(word, set()).add(doc_id)

    index: SearchIndex = {
        prefix: {
            word: sorted(postings[prefix][word], key=posting_sort_key)
            for word in sorted(postings[prefix])
        }
        for prefix in sorted(postings)
    }
    return index, skipped


def build_search_index(
    records: Iterable[Mapping[str, Any]],
    fields_to_index: Sequence[str] = DEFAULT_FIELDS_TO_INDEX,
    id_field: str = DEFAULT_ID_FIELD,
    min_word_length: int = DEFAULT_MIN_WORD_LENGTH,
    prefix_length: int = DEFAULT_PREFIX_LENGTH
) -> SearchIndex:
    """
    Build an inverted index sharded by word prefix.

    Args:
        records: Documents to index
        fields_to_index: Record fields whose text is tokenized
        id_field: Record field stored in posting lists
        min_word_length: Shortest token kept by the tokenizer
        prefix_length: Shard key length; shorter words are not indexed

    Returns:
        {prefix: {word: [ids, ...]}} with sorted, unique posting lists

    Raises:
        ValueError: fields_to_index or id_field is invalid
    """
    if isinstance(fields_to_index, list):
        fields_to_index = tuple(fields_to_index)
    settings = SearchSettings(
        fields_to_index=fields_to_index,
        id_field=id_field,
        min_word_length=min_word_length,
        prefix_length=prefix_length,
    )
    index, _ = _build(records, settings)
    return index


class SearchIndexBuilder:
    """
    Builds and writes the sharded search index of one dataset.

    Shards land in {base_path}/{output_subdir}/{prefix}.json.
    """

    def __init__(self, writer: JsonFileWriter, settings: Optional[SearchSettings] = None):
        self.writer = writer
        self.settings = settings or SearchSettings()

    def build_index(self, records: Iterable[Mapping[str, Any]]) -> Tuple[SearchIndex, int]:
        """Build the index; returns (index, records skipped)."""
        return _build(records, self.settings)

    def export_index(self, index: SearchIndex, base_path: str) -> ExportResult:
        """Write one file per prefix."""
        shard_dir = f"{base_path}/{self.settings.output_subdir}"
        documents = [(f"{shard_dir}/{prefix}.json", shard) for prefix, shard in index.items()]
        result = self.writer.write_many(documents, desc="search index")
        logger.info(f"Generated {len(index)} search index shards for {base_path}")
        return result

    def run(self, records: Sequence[Mapping[str, Any]], base_path: str) -> ExportResult:
        """Build and write the index for base_path."""
        start = time.monotonic()
        logger.info(f"Generating search index for {base_path}...")

        index, skipped = self.build_index(records)
        result = self.export_index(index, base_path)
        result.records_skipped += skipped
        result.duration_seconds = time.monotonic() - start

        words = sum(len(shard) for shard in index.values())
        logger.info(
            f"Search index for {base_path}: {words} words in {len(index)} shards, "
            f"{skipped} documents skipped"
        )
        return result


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Build a prefix-sharded search index from a JSON array"
    )

    parser.add_argument(
        "--input",
        type=Path,
        required=True,
        help="JSON file containing an array of records"
    )

    parser.add_argument(
        "--base-path",
        required=True,
        help="Dataset base path inside the output directory (e.g. vn/posts)"
    )

    parser.add_argument(
        "--output",
        type=Path,
        default=Path("public"),
        help="Output directory (default: public)"
    )

    parser.add_argument(
        "--fields",
        default=",".join(DEFAULT_FIELDS_TO_INDEX),
        help="Comma-separated fields to index (default: title,description)"
    )

    parser.add_argument(
        "--id-field",
        default=DEFAULT_ID_FIELD,
        help="Record field stored in posting lists (default: id)"
    )

    parser.add_argument(
        "--min-word-length",
        type=int,
        default=DEFAULT_MIN_WORD_LENGTH,
        help="Shortest indexed word"
    )

    parser.add_argument(
        "--prefix-length",
        type=int,
        default=DEFAULT_PREFIX_LENGTH,
        help="Shard prefix length"
    )

    parser.add_argument(
        "--minify",
        action="store_true",
        help="Minify JSON output"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        records = load_records(FileDataSource(args.input))
        settings = SearchSettings(
            fields_to_index=tuple(f.strip() for f in args.fields.split(",") if f.strip()),
            id_field=args.id_field,
            min_word_length=args.min_word_length,
            prefix_length=args.prefix_length,
        )
        builder = SearchIndexBuilder(JsonFileWriter(args.output, minify=args.minify), settings)
        result = builder.run(records, args.base_path.strip("/"))
    except (DataSourceError, ValueError) as e:
        logger.error(f"Search index build failed: {e}")
        return 1

    print(f"\nSearch Index Built:")
    print(f"  Shards: {result.files_generated}")
    print(f"  Documents skipped: {result.records_skipped}")
    print(f"  Output: {args.output / args.base_path.strip('/') / settings.output_subdir}")

    return 0 if not result.errors else 1


if __name__ == "__main__":
    sys.exit(main())
