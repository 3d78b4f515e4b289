"""Import configuration: an explicit value passed to every import."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_EXTENSIONS = (".bdf", ".dat", ".nas", ".blk", ".inc")


@dataclass(frozen=True)
class ImportConfig:
    encoding: str = "latin-1"
    include_dirs: tuple[Path, ...] = ()
    include_symbols: dict[str, Path] = field(default_factory=dict)
    valid_extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    check_duplicate_ids: bool = True

    @staticmethod
    def from_mapping(payload: dict[str, Any]) -> ImportConfig:
        extensions = payload.get("valid_extensions", DEFAULT_EXTENSIONS)
        return ImportConfig(
            encoding=str(payload.get("encoding", "latin-1")),
            include_dirs=tuple(Path(p) for p in payload.get("include_dirs") or ()),
            include_symbols={
                str(k).upper(): Path(v) for k, v in (payload.get("include_symbols") or {}).items()
            },
            valid_extensions=tuple(
                (e if e.startswith(".") else f".{e}").lower() for e in extensions
            ),
            check_duplicate_ids=bool(payload.get("check_duplicate_ids", True)),
        )

    def accepts(self, path: Path) -> bool:
        return path.suffix.lower() in self.valid_extensions

    def expand_symbol(self, text: str) -> str:
        """Replace a leading ``SYMBOL:`` with its configured directory."""
        head, sep, tail = text.partition(":")
        if sep and head.upper() in self.include_symbols:
            return str(self.include_symbols[head.upper()] / tail.lstrip("/\\"))
        return text


def load_config(path: Path) -> ImportConfig:
    """Load a config from YAML or JSON (chosen by suffix)."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        payload = yaml.safe_load(text) or {}
    else:
        payload = json.loads(text)
    if not isinstance(payload, dict):
        raise ValueError(f"Config {path} must contain a mapping at the top level")
    return ImportConfig.from_mapping(payload)


def sample_config() -> dict[str, Any]:
    return {
        "encoding": "latin-1",
        "include_dirs": ["includes"],
        "include_symbols": {"MODELS": "/data/models"},
        "valid_extensions": list(DEFAULT_EXTENSIONS),
        "check_duplicate_ids": True,
    }
