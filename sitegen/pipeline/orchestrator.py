#!/usr/bin/env python3
"""
Pipeline Orchestrator

Runs the static export for every configured dataset:
- Fetch records (HTTP or local file)
- Export items, listings, related entities and search shards
- Optional post-build verification
- Progress reporting and a final file count

Usage:
    # Run full pipeline
    python -m sitegen.pipeline.orchestrator

    # Run specific datasets
    python -m sitegen.pipeline.orchestrator --datasets vn,favs

    # Dry run (fetch and build, write nothing)
    python -m sitegen.pipeline.orchestrator --dry-run

    # Verify the output tree afterwards
    python -m sitegen.pipeline.orchestrator --validate
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from sitegen.config import ConfigError, DatasetConfig, SiteConfig, load_site_config
from sitegen.data_loader import DataSourceError, load_records
from sitegen.export.build_site_data import SiteDataExporter
from sitegen.export.writer import ExportResult
from sitegen.validation.validate import SiteValidator

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class StepStatus(Enum):
    """Status of a dataset export."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


@dataclass
class DatasetRun:
    """Runtime state of one dataset export."""
    name: str
    status: StepStatus = StepStatus.PENDING
    records: int = 0
    files_generated: int = 0
    records_skipped: int = 0
    validation_errors: int = 0
    duration_seconds: float = 0.0
    error: str = ""


@dataclass
class BuildResult:
    """Result of a full pipeline run."""
    build_id: str
    started_at: str
    completed_at: Optional[str] = None
    duration_seconds: float = 0.0
    status: str = "pending"

    # Totals across datasets
    export: ExportResult = field(default_factory=ExportResult)
    datasets_succeeded: int = 0
    datasets_failed: int = 0
    datasets_skipped: int = 0

    # Detailed results
    dataset_results: Dict[str, DatasetRun] = field(default_factory=dict)

    # Errors
    errors: List[str] = field(default_factory=list)

    @property
    def files_generated(self) -> int:
        return self.export.files_generated


class PipelineOrchestrator:
    """
    Orchestrates the export of all configured datasets.

    Datasets run in configuration order. A fetch failure or malformed payload
    aborts the run; an empty dataset is skipped; write errors are collected
    and fail the run once every dataset has been attempted.
    """

    def __init__(
        self,
        config: SiteConfig,
        output_dir: Optional[Path] = None,
        dry_run: bool = False,
        validate: bool = False,
        show_progress: bool = False
    ):
        self.config = config
        self.output_dir = Path(output_dir) if output_dir else config.output_dir
        self.dry_run = dry_run
        self.validate = validate
        self.exporter = SiteDataExporter(
            self.output_dir,
            link_prefix=config.link_prefix,
            minify=config.minify,
            max_workers=config.max_workers,
            show_progress=show_progress,
            dry_run=dry_run,
        )

    def _select(self, names: Optional[List[str]]) -> List[DatasetConfig]:
        if not names:
            return list(self.config.datasets)
        return [self.config.dataset(name) for name in names]

    def _run_dataset(self, dataset: DatasetConfig, run: DatasetRun) -> ExportResult:
        """Fetch and export one dataset; DataSourceError propagates."""
        run.status = StepStatus.RUNNING
        start = time.monotonic()

        logger.info(f"Fetching data for {dataset.name}...")
        records = load_records(self.config.source_for(dataset))
        run.records = len(records)

        if not records:
            logger.warning(f"No data found for {dataset.name}. Skipping.")
            run.status = StepStatus.SKIPPED
            run.duration_seconds = time.monotonic() - start
            return ExportResult()

        export = self.exporter.export_dataset(dataset, records)
        run.files_generated = export.files_generated
        run.records_skipped = export.records_skipped

        if self.validate and not self.dry_run:
            validator = SiteValidator(self.output_dir, self.config.link_prefix)
            report = validator.validate_dataset(dataset)
            run.validation_errors = len(report.errors)
            for error in report.errors:
                export.errors.append(f"{error['path']}: {error['message']}")

        run.status = StepStatus.FAILED if export.errors else StepStatus.SUCCESS
        run.duration_seconds = time.monotonic() - start
        return export

    def run(self, dataset_names: Optional[List[str]] = None) -> BuildResult:
        """
        Run the export pipeline.

        Args:
            dataset_names: Optional list of specific datasets to run

        Returns:
            BuildResult with detailed results

        Raises:
            ConfigError: an unknown dataset name was requested
        """
        build_id = f"build_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
        result = BuildResult(
            build_id=build_id,
            started_at=datetime.now().isoformat()
        )
        start = time.monotonic()

        datasets = self._select(dataset_names)
        logger.info(f"Starting build {build_id}: {', '.join(d.name for d in datasets)}")
        if self.dry_run:
            logger.info("[DRY RUN] No files will be written")

        aborted = False
        for dataset in datasets:
            run = DatasetRun(name=dataset.name)
            result.dataset_results[dataset.name] = run

            if aborted:
                run.status = StepStatus.CANCELLED
                continue

            try:
                export = self._run_dataset(dataset, run)
            except DataSourceError as e:
                run.status = StepStatus.FAILED
                run.error = str(e)
                result.datasets_failed += 1
                result.errors.append(f"{dataset.name}: {e}")
                logger.error(f"Dataset {dataset.name} failed: {e}")
                aborted = True
                continue

            result.export.merge(export)
            result.errors.extend(f"{dataset.name}: {error}" for error in export.errors)

            if run.status == StepStatus.SKIPPED:
                result.datasets_skipped += 1
            elif run.status == StepStatus.SUCCESS:
                result.datasets_succeeded += 1
            else:
                result.datasets_failed += 1

        result.status = "failed" if result.errors else "success"
        result.completed_at = datetime.now().isoformat()
        result.duration_seconds = time.monotonic() - start

        logger.info(
            f"Build {build_id} completed: {result.status} "
            f"({result.files_generated} files, {result.datasets_succeeded} succeeded, "
            f"{result.datasets_failed} failed, {result.datasets_skipped} skipped)"
        )

        return result


def run_pipeline(
    config_path: Optional[Path] = None,
    datasets: Optional[List[str]] = None,
    output_dir: Optional[Path] = None,
    dry_run: bool = False,
    validate: bool = False
) -> BuildResult:
    """Load the site config and run the export pipeline."""
    config = load_site_config(config_path)
    orchestrator = PipelineOrchestrator(config, output_dir=output_dir, dry_run=dry_run, validate=validate)
    return orchestrator.run(datasets)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    return number


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Static site data export",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Site config file (default: site.config.yaml or $SITEGEN_CONFIG)"
    )

    parser.add_argument(
        "--datasets",
        type=str,
        help="Comma-separated list of datasets to run"
    )

    parser.add_argument(
        "--output",
        type=Path,
        help="Output directory (default: from config)"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Build everything but write no files"
    )

    parser.add_argument(
        "--validate",
        action="store_true",
        help="Verify the output tree after exporting"
    )

    parser.add_argument(
        "--minify",
        action="store_true",
        help="Minify JSON output"
    )

    parser.add_argument(
        "--workers",
        type=_positive_int,
        help="Max parallel file writes (default: from config)"
    )

    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show progress bars"
    )

    parser.add_argument(
        "--list-datasets",
        action="store_true",
        help="List configured datasets and exit"
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
    except ConfigError as e:
        logger.error(str(e))
        return 1

    if args.minify:
        config = replace(config, minify=True)
    if args.workers is not None:
        config = replace(config, max_workers=args.workers)

    if args.list_datasets:
        print("\nConfigured Datasets:")
        print("=" * 60)
        for dataset in config.datasets:
            print(f"  {dataset.name}")
            print(f"    Source: {dataset.data_path or dataset.data_url}")
            print(f"    Output: {dataset.base_path} (page size {dataset.page_size})")
            for relation in dataset.relations:
                print(f"    Related: {relation.field} -> {relation.base_path}")
            print(f"    Search: {'enabled' if dataset.has_search else 'disabled'}")
        return 0

    orchestrator = PipelineOrchestrator(
        config,
        output_dir=args.output,
        dry_run=args.dry_run,
        validate=args.validate,
        show_progress=args.progress,
    )

    names = [name.strip() for name in args.datasets.split(",")] if args.datasets else None
    try:
        result = orchestrator.run(names)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    # Print summary
    print("\n" + "=" * 60)
    print("BUILD SUMMARY")
    print("=" * 60)
    print(f"Build ID: {result.build_id}")
    print(f"Status: {result.status.upper()}")
    print(f"Duration: {result.duration_seconds:.2f}s")
    print(f"\nFiles:")
    print(f"  Generated: {result.files_generated}")
    print(f"  Created: {result.export.files_created}")
    print(f"  Updated: {result.export.files_updated}")
    print(f"  Unchanged: {result.export.files_unchanged}")
    print(f"  Records skipped: {result.export.records_skipped}")

    if result.dataset_results:
        print("\nDataset Details:")
        for name, run in result.dataset_results.items():
            print(
                f"  {name}: {run.status.value} "
                f"({run.records} records, {run.files_generated} files, {run.duration_seconds:.2f}s)"
            )

    if result.errors:
        print("\nErrors:")
        for error in result.errors:
            print(f"  - {error}")

    print("=" * 60)

    return 0 if result.status == "success" else 1


if __name__ == "__main__":
    sys.exit(main())
