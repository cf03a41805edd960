#!/usr/bin/env python3
"""
Post-Build Verification

Checks a written output tree against the export contract:
- Listing pages: schema, page numbering, totalPages agreement, link chain
- Summary links resolve to item documents
- Entity item documents carry their back-references
- Search shards: words match their prefix, posting lists sorted and unique

Usage:
    # Verify every configured dataset
    python -m sitegen.validation.validate

    # Verify some datasets and write a JSON report
    python -m sitegen.validation.validate --datasets vn --report-file validation_report.json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from jsonschema import Draft202012Validator

from sitegen.config import ConfigError, DatasetConfig, load_site_config
from sitegen.data_schemas import ENTITY_ITEM_SCHEMA, SHARD_SCHEMA, page_schema
from sitegen.export.build_search_index import posting_sort_key
from sitegen.export.pagination import INDEX_FILE, PAGE_DIR, build_page_links, page_path

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

SHARD_VALIDATOR = Draft202012Validator(SHARD_SCHEMA)
ENTITY_ITEM_VALIDATOR = Draft202012Validator(ENTITY_ITEM_SCHEMA)


@dataclass
class ValidationReport:
    """Complete report of a verification run."""
    run_id: str
    started_at: str
    completed_at: Optional[str] = None
    duration_seconds: Optional[float] = None

    # Summary stats
    files_checked: int = 0
    pages_checked: int = 0
    shards_checked: int = 0

    # Detailed findings
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[Dict[str, Any]] = field(default_factory=list)

    # Overall status
    passed: bool = True
    exit_code: int = 0

    def add_error(self, path: str, message: str) -> None:
        self.errors.append({"path": path, "message": message})
        self.passed = False
        self.exit_code = 1

    def add_warning(self, path: str, message: str) -> None:
        self.warnings.append({"path": path, "message": message})

    def finalize(self) -> None:
        """Finalize the report with completion time."""
        self.completed_at = datetime.now().isoformat()
        start = datetime.fromisoformat(self.started_at)
        end = datetime.fromisoformat(self.completed_at)
        self.duration_seconds = (end - start).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)


def _schema_errors(validator: Draft202012Validator, data: Any) -> List[str]:
    messages = []
    for error in validator.iter_errors(data):
        where = "/".join(str(p) for p in error.absolute_path) or "<root>"
        messages.append(f"{where}: {error.message}")
    return messages


class SiteValidator:
    """
    Verifies exported datasets on disk.

    Links inside documents are resolved by stripping link_prefix and looking
    the remainder up under output_dir.
    """

    def __init__(self, output_dir: Path, link_prefix: str = ""):
        self.output_dir = Path(output_dir)
        self.link_prefix = link_prefix

    def _rel(self, path: Path) -> str:
        return path.relative_to(self.output_dir).as_posix()

    def _resolve_link(self, link: str) -> Optional[Path]:
        if self.link_prefix and not link.startswith(self.link_prefix):
            return None
        return self.output_dir / link[len(self.link_prefix):]

    def _load(self, path: Path, report: ValidationReport) -> Optional[Any]:
        report.files_checked += 1
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            report.add_error(self._rel(path), f"Unreadable JSON: {e}")
            return None

    def _check_link(self, link: Any, source: Path, report: ValidationReport) -> None:
        if not isinstance(link, str):
            report.add_error(self._rel(source), f"Link is not a string: {link!r}")
            return
        target = self._resolve_link(link)
        if target is None or not target.is_file():
            report.add_error(self._rel(source), f"Broken link: {link}")

    def validate_listing(
        self,
        base_path: str,
        collection_key: str,
        report: ValidationReport,
        first_page_link: Optional[str] = None
    ) -> None:
        """Verify index.json and page/N.json of one collection."""
        base_dir = self.output_dir / base_path
        index_file = base_dir / INDEX_FILE
        if not base_dir.is_dir():
            report.add_warning(base_path, "Collection not exported")
            return
        if not index_file.is_file():
            report.add_error(self._rel(index_file), "Missing first page")
            return

        first = self._load(index_file, report)
        if first is None:
            return
        try:
            total = int(first["pagination"]["totalPages"])
        except (KeyError, TypeError, ValueError):
            report.add_error(self._rel(index_file), "Missing pagination.totalPages")
            return

        link_base = f"{self.link_prefix}{base_path}"
        if first_page_link is not None:
            first_page_link = first_page_link.format(base_path=link_base)
        validator = Draft202012Validator(page_schema(collection_key))

        for number in range(1, total + 1):
            page_file = base_dir / page_path(number)
            if not page_file.is_file():
                report.add_error(self._rel(page_file), f"Missing page {number} of {total}")
                continue
            page = first if number == 1 else self._load(page_file, report)
            if page is None:
                continue
            report.pages_checked += 1

            problems = _schema_errors(validator, page)
            if problems:
                for problem in problems:
                    report.add_error(self._rel(page_file), problem)
                continue

            expected = build_page_links(number, total, link_base, first_page_link)
            for key, value in expected.items():
                if page["pagination"].get(key) != value:
                    report.add_error(
                        self._rel(page_file),
                        f"pagination.{key} is {page['pagination'].get(key)!r}, expected {value!r}"
                    )

            for summary in page[collection_key]:
                self._check_link(summary.get("link"), page_file, report)

        stale = base_dir / PAGE_DIR / f"{total + 1}.json"
        if stale.is_file():
            report.add_warning(self._rel(stale), "Stale page beyond totalPages")

    def validate_entities(self, base_path: str, report: ValidationReport) -> None:
        """Verify entity item documents and their back-reference links."""
        base_dir = self.output_dir / base_path
        if not base_dir.is_dir():
            return

        for item_file in sorted(base_dir.glob("*.json")):
            if item_file.name == INDEX_FILE:
                continue
            item = self._load(item_file, report)
            if item is None:
                continue
            problems = _schema_errors(ENTITY_ITEM_VALIDATOR, item)
            for problem in problems:
                report.add_error(self._rel(item_file), problem)
            if problems:
                continue
            ids = [post["id"] for post in item["posts"]]
            if len(ids) != len({json.dumps(i) for i in ids}):
                report.add_error(self._rel(item_file), "Duplicate back-references")
            for post in item["posts"]:
                if post.get("link") is not None:
                    self._check_link(post["link"], item_file, report)

    def validate_search_index(self, shard_dir: str, report: ValidationReport) -> None:
        """Verify every shard of a search index directory."""
        directory = self.output_dir / shard_dir
        if not directory.is_dir():
            report.add_warning(shard_dir, "Search index not exported")
            return

        prefix_length = None
        for shard_file in sorted(directory.glob("*.json")):
            shard = self._load(shard_file, report)
            if shard is None:
                continue
            report.shards_checked += 1
            rel = self._rel(shard_file)

            problems = _schema_errors(SHARD_VALIDATOR, shard)
            for problem in problems:
                report.add_error(rel, problem)
            if problems:
                continue

            prefix = shard_file.stem
            if prefix_length is None:
                prefix_length = len(prefix)
            elif len(prefix) != prefix_length:
                report.add_error(rel, f"Prefix length {len(prefix)} differs from {prefix_length}")

            for word, ids in shard.items():
                if not word.startswith(prefix):
                    report.add_error(rel, f"Word {word!r} does not start with {prefix!r}")
                if ids != sorted(ids, key=posting_sort_key):
                    report.add_error(rel, f"Posting list of {word!r} is not sorted")
                if len(ids) != len({json.dumps(i) for i in ids}):
                    report.add_error(rel, f"Posting list of {word!r} has duplicates")

    def validate_dataset(self, dataset: DatasetConfig) -> ValidationReport:
        """Verify one dataset with its relations and search index."""
        report = ValidationReport(
            run_id=f"{dataset.name}_{datetime.now().strftime('%Y%m%d_%H%M%S')}",
            started_at=datetime.now().isoformat()
        )
        logger.info(f"Validating {dataset.name} in {self.output_dir / dataset.base_path}")

        self.validate_listing(
            dataset.base_path, dataset.mapper.collection_key, report, dataset.first_page_link
        )
        for relation in dataset.relations:
            self.validate_listing(
                relation.base_path, relation.mapper.collection_key, report, relation.first_page_link
            )
            self.validate_entities(relation.base_path, report)
        if dataset.has_search:
            self.validate_search_index(
                f"{dataset.base_path}/{dataset.search.output_subdir}", report
            )

        report.finalize()
        logger.info(
            f"Validation of {dataset.name}: {report.files_checked} files, "
            f"{len(report.errors)} errors, {len(report.warnings)} warnings"
        )
        return report


def merge_reports(reports: List[ValidationReport]) -> ValidationReport:
    """Combine per-dataset reports into one."""
    merged = ValidationReport(
        run_id=f"site_{datetime.now().strftime('%Y%m%d_%H%M%S')}",
        started_at=min((r.started_at for r in reports), default=datetime.now().isoformat())
    )
    for report in reports:
        merged.files_checked += report.files_checked
        merged.pages_checked += report.pages_checked
        merged.shards_checked += report.shards_checked
        merged.errors.extend(report.errors)
        merged.warnings.extend(report.warnings)
        if not report.passed:
            merged.passed = False
            merged.exit_code = 1
    merged.finalize()
    return merged


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Verify an exported static data tree"
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Site config file (default: site.config.yaml or $SITEGEN_CONFIG)"
    )

    parser.add_argument(
        "--output",
        type=Path,
        help="Output directory to check (default: from config)"
    )

    parser.add_argument(
        "--datasets",
        type=str,
        help="Comma-separated dataset names (default: all)"
    )

    parser.add_argument(
        "--report-file",
        type=Path,
        help="Write the JSON report to this file"
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
        if args.datasets:
            datasets = [config.dataset(name.strip()) for name in args.datasets.split(",")]
        else:
            datasets = list(config.datasets)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    validator = SiteValidator(args.output or config.output_dir, config.link_prefix)
    report = merge_reports([validator.validate_dataset(d) for d in datasets])

    if args.report_file:
        args.report_file.write_text(report.to_json())

    print(f"\nValidation Summary:")
    print(f"  Files checked: {report.files_checked}")
    print(f"  Pages checked: {report.pages_checked}")
    print(f"  Shards checked: {report.shards_checked}")
    print(f"  Errors: {len(report.errors)}")
    print(f"  Warnings: {len(report.warnings)}")
    for error in report.errors[:20]:
        print(f"    - {error['path']}: {error['message']}")

    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
