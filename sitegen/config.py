"""
Site configuration loader.

Supports loading from:
1. A YAML site config (site.config.yaml) describing each dataset
2. Environment variables (.env.local or CI secrets) overriding site-wide values

Environment Variable Aliases (checked in order):
- Config file: SITEGEN_CONFIG, SITE_CONFIG
- Output dir:  SITEGEN_OUTPUT_DIR, OUTPUT_DIR
- Page size:   SITEGEN_PAGE_SIZE, POSTS_PER_PAGE

The YAML is validated against SITE_CONFIG_SCHEMA and resolved once into frozen
dataclasses, so the exporter never probes for optional keys at run time.

Usage:
    from sitegen.config import load_site_config

    config = load_site_config("site.config.yaml")
    for dataset in config.datasets:
        print(dataset.name, dataset.base_path, dataset.has_search)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from jsonschema import Draft202012Validator

from sitegen.data_loader import USER_AGENT, RetryPolicy, source_for
from sitegen.data_schemas import SITE_CONFIG_SCHEMA
from sitegen.export.build_search_index import SearchSettings
from sitegen.export.mappers import DocumentMapper, build_mapper

DEFAULT_CONFIG_FILE = "site.config.yaml"
DEFAULT_OUTPUT_DIR = "public"
DEFAULT_PAGE_SIZE = 10
DEFAULT_MAX_WORKERS = 8

SITE_CONFIG_VALIDATOR = Draft202012Validator(SITE_CONFIG_SCHEMA)


class ConfigError(ValueError):
    """The site configuration is missing or invalid."""


def _load_env_file(env_file: Optional[Path] = None) -> None:
    """Load environment variables from .env.local if it exists."""
    env_file = env_file or Path.cwd() / ".env.local"
    if env_file.exists():
        with open(env_file, "r") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, _, value = line.partition("=")
                    key = key.strip()
                    value = value.strip()
                    # Remove quotes if present
                    if value.startswith('"') and value.endswith('"'):
                        value = value[1:-1]
                    elif value.startswith("'") and value.endswith("'"):
                        value = value[1:-1]
                    os.environ.setdefault(key, value)


# Load env file on module import
_load_env_file()


# Order matters: first valid value found wins
ENV_VAR_ALIASES = {
    "config_path": ["SITEGEN_CONFIG", "SITE_CONFIG"],
    "output_dir": ["SITEGEN_OUTPUT_DIR", "OUTPUT_DIR"],
    "page_size": ["SITEGEN_PAGE_SIZE", "POSTS_PER_PAGE"],
}


def _get_env_with_aliases(alias_key: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Get an environment variable value, checking multiple aliases.
    Returns (value, var_name) tuple or (None, None) if not found.
    """
    for var_name in ENV_VAR_ALIASES.get(alias_key, []):
        value = os.getenv(var_name)
        if value and not _is_placeholder(value):
            return value, var_name
    return None, None


def _is_placeholder(value: str) -> bool:
    """Check if a value is a placeholder that should be ignored."""
    if not value:
        return True
    value_lower = value.lower()
    return (
        value_lower.startswith("your_") or
        value_lower.startswith("your-") or
        value_lower in ("changeme", "placeholder")
    )


@dataclass(frozen=True)
class FileNaming:
    """How item files of a collection are named: by id or by slug of slug_field."""
    strategy: str = "id"
    slug_field: str = "title"
    slug_max_length: int = 100
    slug_unicode: bool = False

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "FileNaming":
        return cls(
            strategy=raw.get("file_name", "id"),
            slug_field=raw.get("slug_field", "title"),
            slug_max_length=raw.get("slug_max_length", 100),
            slug_unicode=raw.get("slug_unicode", False),
        )


@dataclass(frozen=True)
class RelationConfig:
    """A secondary entity collection derived from a record relation field."""
    field: str
    base_path: str
    page_size: int
    mapper: DocumentMapper
    id_field: str = "id"
    name_field: str = "name"
    naming: FileNaming = FileNaming()
    first_page_link: Optional[str] = None


@dataclass(frozen=True)
class DatasetConfig:
    """Everything needed to export one dataset."""
    name: str
    base_path: str
    page_size: int
    mapper: DocumentMapper
    data_url: Optional[str] = None
    data_path: Optional[str] = None
    id_field: str = "id"
    naming: FileNaming = FileNaming()
    first_page_link: Optional[str] = None
    relations: Tuple[RelationConfig, ...] = ()
    search: Optional[SearchSettings] = None

    @property
    def has_relations(self) -> bool:
        return bool(self.relations)

    @property
    def has_search(self) -> bool:
        return self.search is not None and self.search.enabled


@dataclass(frozen=True)
class HttpSettings:
    timeout: float = 30
    max_attempts: int = 3
    backoff_seconds: float = 0.6
    user_agent: str = USER_AGENT

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.max_attempts, backoff_seconds=self.backoff_seconds)


@dataclass(frozen=True)
class SiteConfig:
    """Resolved site configuration."""
    output_dir: Path
    datasets: Tuple[DatasetConfig, ...]
    page_size: int = DEFAULT_PAGE_SIZE
    link_prefix: str = ""
    minify: bool = False
    max_workers: int = DEFAULT_MAX_WORKERS
    http: HttpSettings = HttpSettings()
    config_dir: Path = field(default_factory=Path.cwd)

    def dataset(self, name: str) -> DatasetConfig:
        for dataset in self.datasets:
            if dataset.name == name:
                return dataset
        raise ConfigError(
            f"Unknown dataset {name!r} (configured: {', '.join(d.name for d in self.datasets)})"
        )

    def source_for(self, dataset: DatasetConfig):
        """Data source of a dataset; relative data_path is resolved against the config file."""
        return source_for(
            data_url=dataset.data_url,
            data_path=dataset.data_path,
            base_dir=self.config_dir,
            timeout=self.http.timeout,
            retry=self.http.retry_policy(),
            user_agent=self.http.user_agent,
        )


def validate_config(raw: Any) -> List[str]:
    """
    Validate a raw (parsed YAML) site config against the schema.
    Returns a list of issues (empty if all is well).
    """
    issues = []
    for error in sorted(SITE_CONFIG_VALIDATOR.iter_errors(raw), key=lambda e: [str(p) for p in e.absolute_path]):
        where = "/".join(str(p) for p in error.absolute_path) or "<root>"
        issues.append(f"{where}: {error.message}")
    return issues


def _page_size(value: Any, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{where}: page_size must be a positive integer, got {value!r}")
    return value


def _clean_path(path: str) -> str:
    return path.strip().strip("/")


def _first_page_link(value: Optional[str], where: str) -> Optional[str]:
    """Check a first_page_link template; only {base_path} may be substituted."""
    if value is None:
        return None
    try:
        value.format(base_path="x")
    except (KeyError, IndexError, ValueError) as e:
        raise ConfigError(
            f"{where}: first_page_link {value!r} is not a valid template "
            f"(only {{base_path}} is substituted): {e!r}"
        ) from None
    return value


def _build_relation(raw: Mapping[str, Any], default_page_size: int, where: str) -> RelationConfig:
    relation_field = raw["field"]
    return RelationConfig(
        field=relation_field,
        base_path=_clean_path(raw["base_path"]),
        page_size=_page_size(raw.get("page_size", default_page_size), where),
        mapper=build_mapper("entity", collection_key=raw.get("collection_key", relation_field)),
        id_field=raw.get("id_field", "id"),
        name_field=raw.get("name_field", "name"),
        naming=FileNaming.from_dict(raw),
        first_page_link=_first_page_link(raw.get("first_page_link"), where),
    )


def _build_search(raw: Optional[Mapping[str, Any]], id_field: str, where: str) -> Optional[SearchSettings]:
    if raw is None:
        return None

    defaults = SearchSettings()
    settings = SearchSettings(
        enabled=raw.get("enabled", True),
        fields_to_index=tuple(raw.get("fields_to_index", defaults.fields_to_index)),
        id_field=raw.get("id_field", id_field),
        min_word_length=raw.get("min_word_length", defaults.min_word_length),
        prefix_length=raw.get("prefix_length", defaults.prefix_length),
        output_subdir=_clean_path(raw.get("output_subdir", defaults.output_subdir)),
    )
    try:
        settings.validate()
    except ValueError as e:
        raise ConfigError(f"{where}: {e}") from e
    return settings


def _build_dataset(raw: Mapping[str, Any], default_page_size: int) -> DatasetConfig:
    name = raw["name"]
    where = f"datasets/{name}"

    if not raw.get("data_url") and not raw.get("data_path"):
        raise ConfigError(f"{where}: one of data_url or data_path is required")

    try:
        mapper = build_mapper(
            raw.get("mapper", "generic"),
            item_fields=raw.get("item_fields"),
            summary_fields=raw.get("summary_fields"),
            collection_key=raw.get("collection_key"),
        )
    except ValueError as e:
        raise ConfigError(f"{where}: {e}") from e

    page_size = _page_size(raw.get("page_size", default_page_size), where)
    id_field = raw.get("id_field", "id")

    relations = tuple(
        _build_relation(relation, page_size, f"{where}/relations/{relation['field']}")
        for relation in raw.get("relations", [])
    )

    return DatasetConfig(
        name=name,
        base_path=_clean_path(raw["base_path"]),
        page_size=page_size,
        mapper=mapper,
        data_url=raw.get("data_url"),
        data_path=raw.get("data_path"),
        id_field=id_field,
        naming=FileNaming.from_dict(raw),
        first_page_link=_first_page_link(raw.get("first_page_link"), where),
        relations=relations,
        search=_build_search(raw.get("search"), id_field, f"{where}/search"),
    )


def build_site_config(raw: Any, config_dir: Optional[Path] = None) -> SiteConfig:
    """
    Resolve a parsed site config mapping into a SiteConfig.
    Environment variables take precedence over the file for output dir and page size.

    Raises:
        ConfigError: the mapping fails validation
    """
    issues = validate_config(raw)
    if issues:
        raise ConfigError("Invalid site config:\n  " + "\n  ".join(issues))

    env_output, _ = _get_env_with_aliases("output_dir")
    env_page_size, env_var = _get_env_with_aliases("page_size")

    page_size = raw.get("page_size", DEFAULT_PAGE_SIZE)
    if env_page_size is not None:
        try:
            page_size = int(env_page_size)
        except ValueError:
            raise ConfigError(f"{env_var} must be an integer, got {env_page_size!r}") from None
    page_size = _page_size(page_size, "site")

    datasets = tuple(_build_dataset(dataset, page_size) for dataset in raw["datasets"])
    names = [d.name for d in datasets]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate dataset names: {', '.join(duplicates)}")

    http = raw.get("http", {})
    return SiteConfig(
        output_dir=Path(env_output or raw.get("output_dir", DEFAULT_OUTPUT_DIR)),
        datasets=datasets,
        page_size=page_size,
        link_prefix=raw.get("link_prefix", ""),
        minify=raw.get("minify", False),
        max_workers=raw.get("max_workers", DEFAULT_MAX_WORKERS),
        http=HttpSettings(
            timeout=http.get("timeout", 30),
            max_attempts=http.get("max_attempts", 3),
            backoff_seconds=http.get("backoff_seconds", 0.6),
            user_agent=http.get("user_agent", USER_AGENT),
        ),
        config_dir=config_dir or Path.cwd(),
    )


def default_config_path() -> Path:
    env_path, _ = _get_env_with_aliases("config_path")
    return Path(env_path) if env_path else Path.cwd() / DEFAULT_CONFIG_FILE


def load_site_config(path: Optional[Path] = None) -> SiteConfig:
    """
    Load and resolve a YAML site config.

    Raises:
        ConfigError: the file is missing, unparsable or invalid
    """
    path = Path(path) if path else default_config_path()
    if not path.exists():
        raise ConfigError(f"Config not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse {path}: {e}") from e

    return build_site_config(raw, config_dir=path.resolve().parent)


@lru_cache(maxsize=1)
def get_config() -> SiteConfig:
    """The site config at the default location, loaded once per process."""
    return load_site_config()


def get_detected_env_vars() -> Dict[str, Dict[str, Any]]:
    """
    Get information about which environment variables were detected.
    Useful for debugging configuration issues.
    """
    detected = {}
    for alias_key in ENV_VAR_ALIASES:
        value, var_name = _get_env_with_aliases(alias_key)
        detected[alias_key] = {"var_name": var_name, "configured": value is not None, "value": value}
    return detected


if __name__ == "__main__":
    print("=== Configuration Test ===\n")

    print("Supported environment variable names:")
    for alias_key, names in ENV_VAR_ALIASES.items():
        print(f"  {alias_key}: {', '.join(names)}")
    print()

    print("Detected configuration:")
    for alias_key, info in get_detected_env_vars().items():
        if info["configured"]:
            print(f"  {alias_key}: ✓ {info['value']} (via {info['var_name']})")
        else:
            print(f"  {alias_key}: ✗ Not set")
    print()

    try:
        config = get_config()
    except ConfigError as e:
        print(f"Configuration issues:\n  {e}")
        raise SystemExit(1)

    print(f"Output dir: {config.output_dir}")
    for dataset in config.datasets:
        source = dataset.data_path or dataset.data_url
        print(f"  {dataset.name}: {dataset.base_path} <- {source}")
        print(f"    page size {dataset.page_size}, search {'on' if dataset.has_search else 'off'}")
        for relation in dataset.relations:
            print(f"    relation {relation.field} -> {relation.base_path}")
