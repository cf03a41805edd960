import json
from pathlib import Path
from typing import Any, Dict, List

import pytest

from sitegen.config import ENV_VAR_ALIASES, build_site_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer/CI overrides out of config resolution."""
    for names in ENV_VAR_ALIASES.values():
        for name in names:
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sample_records() -> List[Dict[str, Any]]:
    return [
        {
            "id": 1,
            "title": "Apple Pie",
            "description": "A sweet story",
            "image": "https://img.example/1.jpg",
            "developers": [{"id": "d1", "name": "Dev One"}],
        },
        {
            "id": 2,
            "title": "Apple Tart",
            "developers": [
                {"id": "d1", "name": "Dev One"},
                {"id": "d2", "name": "Dev Two"},
            ],
        },
        {
            "id": 3,
            "title": "Banana Split",
            "developers": [],
        },
    ]


@pytest.fixture
def write_records(tmp_path):
    """Write records to a JSON file under tmp_path and return its path."""
    def _write(records: Any, name: str = "records.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(records), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def vn_dataset_raw() -> Dict[str, Any]:
    return {
        "name": "vn",
        "data_path": "records.json",
        "base_path": "vn/posts",
        "mapper": "posts",
        "page_size": 2,
        "relations": [
            {"field": "developers", "base_path": "vn/developers"},
        ],
        "search": {"fields_to_index": ["title", "description"]},
    }


@pytest.fixture
def make_config(tmp_path):
    """Build a SiteConfig from dataset dicts, resolving data_path against tmp_path."""
    def _make(*datasets: Dict[str, Any], **site: Any):
        raw = {"output_dir": str(tmp_path / "public"), **site, "datasets": list(datasets)}
        return build_site_config(raw, config_dir=tmp_path)
    return _make

