#!/usr/bin/env python3
"""
Static JSON Export for Frontend

Builds the static data tree of one dataset:
- One item document per record ({base_path}/{id-or-slug}.json)
- Paginated listings ({base_path}/index.json, {base_path}/page/{N}.json)
- Related entities (e.g. developers) with their own items and listings
- Optional prefix-sharded search index ({base_path}/search-index/{prefix}.json)

Usage:
    # Export one configured dataset
    python -m sitegen.export.build_site_data --config site.config.yaml --dataset vn

    # Same, reading records from a local file instead of data_url
    python -m sitegen.export.build_site_data --dataset vn --input merged.json

    # Minified output into another directory
    python -m sitegen.export.build_site_data --dataset vn --output dist --minify
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sitegen.config import (
    ConfigError,
    DatasetConfig,
    FileNaming,
    RelationConfig,
    load_site_config,
)
from sitegen.data_loader import DataSourceError, FileDataSource, load_records
from sitegen.export.build_search_index import SearchIndexBuilder
from sitegen.export.entities import extract_entities
from sitegen.export.mappers import DocumentMapper, EmbeddedRelation
from sitegen.export.pagination import INDEX_FILE, page_path, paginate
from sitegen.export.writer import ExportResult, JsonFileWriter
from sitegen.lib.slugs import SlugRegistry, make_slug

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

Record = Mapping[str, Any]

# Item names that would collide with listing files in the same directory
RESERVED_NAMES = (INDEX_FILE[:-len(".json")],)


def assign_file_names(
    records: Sequence[Record],
    naming: FileNaming,
    id_field: str = "id"
) -> List[str]:
    """
    Pick a unique file name (without .json) for every record, in order.

    Records without an id fall back to the slug of naming.slug_field, so every
    record always gets exactly one file.
    """
    registry = SlugRegistry(reserved=RESERVED_NAMES)
    names = []

    for position, record in enumerate(records):
        base = ""
        if naming.strategy == "id":
            record_id = record.get(id_field)
            if record_id is not None and str(record_id).strip():
                base = str(record_id).strip().replace("/", "-").replace("\\", "-")
            else:
                logger.warning(
                    f"Record {position} missing '{id_field}' - naming it from '{naming.slug_field}'"
                )
        if not base:
            base = make_slug(
                record.get(naming.slug_field),
                max_length=naming.slug_max_length,
                unicode=naming.slug_unicode,
            )
        names.append(registry.claim(base))

    return names


class SiteDataExporter:
    """
    Exports the static JSON tree of a dataset.

    Features:
    - Item, listing and entity documents from one record collection
    - Search index shards
    - Per-call ExportResult counts summed by the caller
    """

    def __init__(
        self,
        output_path: Path,
        link_prefix: str = "",
        minify: bool = False,
        max_workers: int = 8,
        show_progress: bool = False,
        dry_run: bool = False
    ):
        self.output_path = Path(output_path)
        self.link_prefix = link_prefix
        self.writer = JsonFileWriter(
            self.output_path,
            minify=minify,
            max_workers=max_workers,
            show_progress=show_progress,
            dry_run=dry_run,
        )

    def link(self, base_path: str, name: str) -> str:
        return f"{self.link_prefix}{base_path}/{name}.json"

    def _first_page_link(self, template: Optional[str], link_base: str) -> Optional[str]:
        if template is None:
            return None
        return template.format(base_path=link_base)

    def generate_paginated_files(
        self,
        records: Sequence[Record],
        base_path: str,
        page_size: int,
        mapper: DocumentMapper,
        names: Sequence[str],
        relations: Sequence[EmbeddedRelation] = (),
        first_page_link: Optional[str] = None,
        type_name: str = "item"
    ) -> ExportResult:
        """
        Write item documents plus the paginated listing of a collection.

        Args:
            records: Collection in listing order
            base_path: Directory of the collection inside the output tree
            page_size: Summaries per listing page
            mapper: Document shapes for items, summaries and pages
            names: File name of each record (see assign_file_names)
            relations: Relation fields embedded into item documents
            first_page_link: Link template for page 1 ("{base_path}" is substituted)
            type_name: Label used in log messages

        Returns:
            ExportResult for the item and page files
        """
        pages = paginate(range(len(records)), page_size)
        links = [self.link(base_path, name) for name in names]
        link_base = f"{self.link_prefix}{base_path}"
        first_link = self._first_page_link(first_page_link, link_base)

        items = [
            (f"{base_path}/{name}.json", mapper.map_item(record, link, relations))
            for record, name, link in zip(records, names, links)
        ]
        result = self.writer.write_many(items, desc=type_name)

        page_documents = []
        for number, positions in enumerate(pages, start=1):
            page = mapper.map_page(
                [records[i] for i in positions],
                [links[i] for i in positions],
                number,
                len(pages),
                link_base,
                first_link,
            )
            page_documents.append((f"{base_path}/{page_path(number)}", page))

        result.merge(self.writer.write_many(page_documents, desc=f"{type_name} pagination"))
        return result

    def export_relation(
        self,
        relation: RelationConfig,
        records: Sequence[Record],
        record_links: Dict[int, str],
        record_id_field: str = "id"
    ) -> Tuple[ExportResult, EmbeddedRelation]:
        """
        Extract, write and paginate the entities behind one relation field.

        Returns:
            (ExportResult, EmbeddedRelation carrying each entity's link)
        """
        entities = extract_entities(
            records,
            relation.field,
            relation.id_field,
            lambda record: record_links.get(id(record)),
            name_field=relation.name_field,
            record_id_field=record_id_field,
        )

        embedded = EmbeddedRelation(relation.field, relation.id_field, relation.name_field)
        if not entities:
            logger.info(f"No {relation.field} found to generate related entities")
            return ExportResult(), embedded

        logger.info(f"Generating {len(entities)} {relation.field} pages...")
        entity_records = [entity.to_record() for entity in entities]
        names = assign_file_names(entity_records, relation.naming, "id")

        result = self.generate_paginated_files(
            entity_records,
            relation.base_path,
            relation.page_size,
            relation.mapper,
            names,
            first_page_link=relation.first_page_link,
            type_name=relation.field,
        )

        links = {
            entity.id: self.link(relation.base_path, name)
            for entity, name in zip(entities, names)
        }
        return result, EmbeddedRelation(relation.field, relation.id_field, relation.name_field, links)

    def export_dataset(self, dataset: DatasetConfig, records: Sequence[Record]) -> ExportResult:
        """
        Export items, listings, related entities and search index of a dataset.

        Empty datasets are skipped with a warning.
        """
        result = ExportResult()
        start = time.monotonic()

        if not records:
            logger.warning(f"No data found for {dataset.name}. Skipping.")
            return result

        logger.info(f"Exporting {dataset.name}: {len(records)} records -> {dataset.base_path}")

        names = assign_file_names(records, dataset.naming, dataset.id_field)
        # Keyed by object identity: records need not have usable ids
        record_links = {
            id(record): self.link(dataset.base_path, name)
            for record, name in zip(records, names)
        }

        embedded = []
        for relation in dataset.relations:
            relation_result, relation_links = self.export_relation(
                relation, records, record_links, dataset.id_field
            )
            result.merge(relation_result)
            embedded.append(relation_links)

        result.merge(self.generate_paginated_files(
            records,
            dataset.base_path,
            dataset.page_size,
            dataset.mapper,
            names,
            relations=embedded,
            first_page_link=dataset.first_page_link,
            type_name=dataset.name,
        ))

        if dataset.has_search:
            builder = SearchIndexBuilder(self.writer, dataset.search)
            result.merge(builder.run(records, dataset.base_path))

        result.duration_seconds = time.monotonic() - start
        logger.info(
            f"Export of {dataset.name} complete: {result.files_created} created, "
            f"{result.files_updated} updated, {result.files_unchanged} unchanged, "
            f"{result.total_bytes:,} bytes"
        )
        return result


def export_site_data(
    dataset: DatasetConfig,
    records: Sequence[Record],
    output_path: Path,
    link_prefix: str = "",
    minify: bool = False
) -> ExportResult:
    """Export one dataset's records to output_path."""
    exporter = SiteDataExporter(output_path, link_prefix=link_prefix, minify=minify)
    return exporter.export_dataset(dataset, records)


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Static JSON Export for Frontend",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Site config file (default: site.config.yaml or $SITEGEN_CONFIG)"
    )

    parser.add_argument(
        "--dataset",
        required=True,
        help="Name of the dataset to export"
    )

    parser.add_argument(
        "--input",
        type=Path,
        help="Read records from this JSON file instead of the dataset source"
    )

    parser.add_argument(
        "--output",
        type=Path,
        help="Output directory (default: from config)"
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
        config = load_site_config(args.config)
        dataset = config.dataset(args.dataset)
        source = FileDataSource(args.input) if args.input else config.source_for(dataset)
        records = load_records(source)

        exporter = SiteDataExporter(
            output_path=args.output or config.output_dir,
            link_prefix=config.link_prefix,
            minify=args.minify or config.minify,
            max_workers=config.max_workers,
        )
        result = exporter.export_dataset(dataset, records)
    except (ConfigError, DataSourceError) as e:
        logger.error(f"Export failed: {e}")
        return 1

    print(f"\nExport Summary:")
    print(f"  Files generated: {result.files_generated}")
    print(f"  Files unchanged: {result.files_unchanged}")
    print(f"  Records skipped: {result.records_skipped}")
    print(f"  Total bytes: {result.total_bytes:,}")
    print(f"  Duration: {result.duration_seconds:.2f}s")

    if result.errors:
        print(f"  Errors: {len(result.errors)}")
        for error in result.errors:
            print(f"    - {error}")

    return 0 if not result.errors else 1


if __name__ == "__main__":
    sys.exit(main())
