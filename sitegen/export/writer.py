"""
JSON File Sink

Writes export documents under an output directory:
- Pretty (2-space) or minified JSON
- Unchanged files are detected by content and left untouched
- Bounded parallel writes
- Per-batch results returned to the caller (no global counters)
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Literal, Tuple

from tqdm import tqdm

logger = logging.getLogger(__name__)

WriteStatus = Literal["created", "updated", "unchanged"]

# Number of files per batch logged at INFO; the rest go to DEBUG
LOG_FIRST_FILES = 3


@dataclass
class WriteOutcome:
    """Result of writing a single file."""
    path: Path
    status: WriteStatus
    bytes_written: int = 0


@dataclass
class ExportResult:
    """Result of an export operation."""
    files_created: int = 0
    files_updated: int = 0
    files_unchanged: int = 0
    total_bytes: int = 0
    records_skipped: int = 0
    duration_seconds: float = 0.0
    errors: List[str] = field(default_factory=list)

    @property
    def files_generated(self) -> int:
        """Every file the export produced, whether or not its content changed."""
        return self.files_created + self.files_updated + self.files_unchanged

    def add_outcome(self, outcome: WriteOutcome) -> None:
        if outcome.status == "created":
            self.files_created += 1
        elif outcome.status == "updated":
            self.files_updated += 1
        else:
            self.files_unchanged += 1
        self.total_bytes += outcome.bytes_written

    def merge(self, other: "ExportResult") -> "ExportResult":
        """Add another result's counts to this one and return self."""
        self.files_created += other.files_created
        self.files_updated += other.files_updated
        self.files_unchanged += other.files_unchanged
        self.total_bytes += other.total_bytes
        self.records_skipped += other.records_skipped
        self.duration_seconds += other.duration_seconds
        self.errors.extend(other.errors)
        return self


class JsonFileWriter:
    """
    Writes JSON documents relative to output_dir.

    Features:
    - Consistent serialization (2-space indent, or compact when minify is set)
    - Content comparison so re-runs on unchanged data rewrite nothing
    - ThreadPoolExecutor fan-out limited to max_workers
    - Optional tqdm progress bars
    """

    def __init__(
        self,
        output_dir: Path,
        minify: bool = False,
        max_workers: int = 8,
        show_progress: bool = False,
        dry_run: bool = False
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.output_dir = Path(output_dir)
        self.minify = minify
        self.max_workers = max_workers
        self.show_progress = show_progress
        self.dry_run = dry_run

    def serialize(self, data: Any) -> str:
        if self.minify:
            return json.dumps(data, separators=(",", ":"), ensure_ascii=False)
        return json.dumps(data, indent=2, ensure_ascii=False)

    def write_json(self, rel_path: str, data: Any) -> WriteOutcome:
        """
        Write one document.

        Returns:
            WriteOutcome describing whether the file was created, updated or unchanged
        """
        output_file = self.output_dir / rel_path
        json_bytes = self.serialize(data).encode("utf-8")

        if output_file.exists():
            if output_file.read_bytes() == json_bytes:
                return WriteOutcome(output_file, "unchanged")
            status: WriteStatus = "updated"
        else:
            status = "created"

        if not self.dry_run:
            output_file.parent.mkdir(parents=True, exist_ok=True)
            output_file.write_bytes(json_bytes)

        return WriteOutcome(output_file, status, len(json_bytes))

    def write_many(
        self,
        documents: Iterable[Tuple[str, Any]],
        desc: str = "files"
    ) -> ExportResult:
        """
        Write a batch of (relative path, document) pairs in parallel.

        Write failures are recorded in the result and do not stop the batch.
        """
        documents = list(documents)
        result = ExportResult()
        if not documents:
            return result

        def _write(index_and_doc: Tuple[int, Tuple[str, Any]]) -> WriteOutcome:
            index, (rel_path, data) = index_and_doc
            outcome = self.write_json(rel_path, data)
            log = logger.info if index < LOG_FIRST_FILES else logger.debug
            log(f"Generated {desc} file: {rel_path} ({outcome.status})")
            return outcome

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(_write, item) for item in enumerate(documents)]
            progress = tqdm(
                futures,
                desc=f"Writing {desc}",
                unit="file",
                disable=not self.show_progress,
            )
            for (rel_path, _), future in zip(documents, progress):
                try:
                    result.add_outcome(future.result())
                except OSError as e:
                    result.errors.append(f"{rel_path}: {e}")
                    logger.error(f"Failed to write {rel_path}: {e}")

        logger.info(f"Generated {result.files_generated} {desc} files in total")
        return result
