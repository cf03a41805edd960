"""
Dataset sources.

Records come from either a JSON URL (fetched with requests, retrying transient
failures) or a local JSON file. Either way the payload must be a JSON array of
objects; anything else is a fatal DataSourceError.

Usage:
    from sitegen.data_loader import HttpDataSource, RetryPolicy, load_records

    source = HttpDataSource(url, retry=RetryPolicy(max_attempts=5))
    records = load_records(source)
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
from jsonschema import Draft202012Validator

from sitegen.data_schemas import RECORDS_SCHEMA

logger = logging.getLogger(__name__)

JsonDict = Dict[str, Any]

USER_AGENT = "sitegen/1.0 (static data export)"
RETRY_STATUSES = (429, 502, 503, 504)

RECORDS_VALIDATOR = Draft202012Validator(RECORDS_SCHEMA)


class DataSourceError(RuntimeError):
    """Fetching or parsing a dataset failed."""


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with linear backoff (backoff_seconds * attempt)."""
    max_attempts: int = 3
    backoff_seconds: float = 0.6
    retry_statuses: Tuple[int, ...] = RETRY_STATUSES

    def delay(self, attempt: int) -> float:
        return self.backoff_seconds * attempt


class HttpDataSource:
    """JSON over HTTP(S) using a requests session."""

    def __init__(
        self,
        url: str,
        timeout: float = 30,
        retry: Optional[RetryPolicy] = None,
        session: Optional[requests.Session] = None,
        user_agent: str = USER_AGENT,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.url = url
        self.timeout = timeout
        self.retry = retry or RetryPolicy()
        # Only a session created here is closed by fetch()
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})
        self._sleep = sleep

    def __repr__(self) -> str:
        return f"HttpDataSource({self.url!r})"

    def _get(self) -> requests.Response:
        last_error: Optional[Exception] = None

        for attempt in range(1, self.retry.max_attempts + 1):
            try:
                r = self.session.get(self.url, timeout=self.timeout)
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = e
                logger.warning(
                    f"Fetch {self.url} failed ({e}), attempt {attempt}/{self.retry.max_attempts}"
                )
            else:
                if r.status_code not in self.retry.retry_statuses:
                    try:
                        r.raise_for_status()
                    except requests.HTTPError as e:
                        raise DataSourceError(f"Failed to fetch {self.url}: {e}") from e
                    return r
                last_error = DataSourceError(f"HTTP {r.status_code}")
                logger.warning(
                    f"Fetch {self.url} returned {r.status_code}, "
                    f"attempt {attempt}/{self.retry.max_attempts}"
                )

            if attempt < self.retry.max_attempts:
                self._sleep(self.retry.delay(attempt))

        raise DataSourceError(
            f"Failed to fetch {self.url} after {self.retry.max_attempts} attempts: {last_error}"
        )

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def fetch(self) -> Any:
        """Fetch and decode the JSON payload."""
        try:
            r = self._get()
            try:
                return r.json()
            except ValueError as e:
                raise DataSourceError(f"Invalid JSON from {self.url}: {e}") from e
        finally:
            self.close()


class FileDataSource:
    """JSON read from a local file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"FileDataSource({str(self.path)!r})"

    def fetch(self) -> Any:
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            raise DataSourceError(f"Cannot read {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise DataSourceError(f"Invalid JSON in {self.path}: {e}") from e


def load_records(source) -> List[JsonDict]:
    """
    Fetch records from source and check they form a JSON array of objects.

    Raises:
        DataSourceError: fetch failed or the payload has the wrong shape
    """
    payload = source.fetch()

    if not isinstance(payload, list):
        raise DataSourceError(f"Fetched data from {source!r} is not an array")

    error = next(iter(RECORDS_VALIDATOR.iter_errors(payload)), None)
    if error is not None:
        where = "/".join(str(p) for p in error.absolute_path) or "<root>"
        raise DataSourceError(f"Invalid records from {source!r} at {where}: {error.message}")

    logger.info(f"Loaded {len(payload)} records from {source!r}")
    return payload


def source_for(
    data_url: Optional[str] = None,
    data_path: Optional[str] = None,
    base_dir: Optional[Path] = None,
    timeout: float = 30,
    retry: Optional[RetryPolicy] = None,
    user_agent: str = USER_AGENT
):
    """Pick the data source for a dataset; a local path wins over a URL."""
    if data_path:
        path = Path(data_path)
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
        return FileDataSource(path)
    if data_url:
        return HttpDataSource(data_url, timeout=timeout, retry=retry, user_agent=user_agent)
    raise DataSourceError("Dataset has neither data_url nor data_path")
