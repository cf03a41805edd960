import json
from pathlib import Path
from typing import Any, Dict


def read_tree(root: Path) -> Dict[str, bytes]:
    """Relative path -> bytes of every file under root."""
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


def load_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))
