"""
Flat-file storage helpers.

JSON index files and markdown files with a YAML frontmatter block:

    ---
    id: 5f0c...
    title: Ship supplies
    ---
    Markdown body

Reads of missing files return None / empty lists. Any other I/O or parse
failure is raised as UpstreamIOError. Writes are atomic (temp file + rename).
"""
import json
import logging
import os
import shutil
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .errors import UpstreamIOError

logger = logging.getLogger(__name__)

FRONTMATTER_DELIM = "---"


def _plain(value: Any) -> Any:
    """
    Normalise YAML-native values to JSON-friendly ones.

    Hand-written frontmatter like `date: 2024-07-12` loads as a date object;
    the rest of the code only deals in strings. None values are dropped from
    mappings and lists, so optional fields are simply absent on disk.
    """
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_plain(v) for v in value if v is not None]
    return value


def _atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_file = path.with_name(path.name + ".tmp")
    try:
        with open(tmp_file, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_file, path)
    except OSError as e:
        raise UpstreamIOError(f"Failed to write {path}: {e}") from e


# ── JSON ─────────────────────────────────────────────────────────────────────

def read_json(path: Path) -> Optional[Any]:
    """Parsed JSON content, or None if the file does not exist."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise UpstreamIOError(f"Failed to read {path}: {e}") from e


def write_json(path: Path, data: Any) -> None:
    _atomic_write(path, json.dumps(data, indent=2, ensure_ascii=False))
    logger.debug(f"Wrote {path}")


# ── Markdown + frontmatter ───────────────────────────────────────────────────

def parse_markdown(raw: str) -> Tuple[Dict[str, Any], str]:
    """Split raw text into (frontmatter dict, body). No block -> ({}, raw)."""
    if not raw.startswith(FRONTMATTER_DELIM):
        return {}, raw

    lines = raw.split("\n")
    for i in range(1, len(lines)):
        if lines[i].strip() == FRONTMATTER_DELIM:
            header = "\n".join(lines[1:i])
            body = "\n".join(lines[i + 1:])
            data = yaml.safe_load(header) or {}
            if not isinstance(data, dict):
                raise yaml.YAMLError("frontmatter is not a mapping")
            return _plain(data), body
    return {}, raw


def render_markdown(frontmatter: Dict[str, Any], body: str) -> str:
    header = yaml.safe_dump(
        _plain(frontmatter),
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )
    return f"{FRONTMATTER_DELIM}\n{header}{FRONTMATTER_DELIM}\n{body}\n"


def read_markdown(path: Path) -> Optional[Tuple[Dict[str, Any], str]]:
    """(frontmatter, body) of a markdown file, or None if it does not exist."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read()
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        raise UpstreamIOError(f"Failed to read {path}: {e}") from e

    try:
        return parse_markdown(raw)
    except yaml.YAMLError as e:
        raise UpstreamIOError(f"Bad frontmatter in {path}: {e}") from e


def write_markdown(path: Path, frontmatter: Dict[str, Any], body: str) -> None:
    _atomic_write(path, render_markdown(frontmatter, body))
    logger.debug(f"Wrote {path}")


# ── Directory helpers ────────────────────────────────────────────────────────

def list_files(path: Path, suffix: str = "") -> List[str]:
    """Sorted file names in path (optionally filtered by suffix)."""
    if not path.is_dir():
        return []
    return sorted(
        p.name for p in path.iterdir()
        if p.is_file() and p.name.endswith(suffix)
    )


def list_dirs(path: Path) -> List[str]:
    if not path.is_dir():
        return []
    return sorted(p.name for p in path.iterdir() if p.is_dir())


def delete_file(path: Path) -> bool:
    """Remove a file. Returns False if it was already gone."""
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        raise UpstreamIOError(f"Failed to delete {path}: {e}") from e


def delete_dir(path: Path) -> bool:
    if not path.exists():
        return False
    try:
        shutil.rmtree(path)
        return True
    except OSError as e:
        raise UpstreamIOError(f"Failed to delete {path}: {e}") from e
