from __future__ import annotations
from .schemas import Config
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
import json

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # py<=310


def apply_overrides(data: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Set dotted keys (e.g. 'run.diagnostics_level') in a raw config dict.

    None values are skipped so unset CLI flags leave the TOML untouched.
    Intermediate tables are created as needed.
    """
    for dotted, value in overrides.items():
        if value is None:
            continue
        node = data
        *parents, leaf = dotted.split(".")
        for key in parents:
            node = node.setdefault(key, {})
            if not isinstance(node, dict):
                raise ValueError(f"Cannot override '{dotted}': '{key}' is not a table")
        node[leaf] = value
    return data


def load_config_text(text: str, overrides: Optional[Mapping[str, Any]] = None) -> Config:
    data = tomllib.loads(text)
    if overrides:
        apply_overrides(data, overrides)
    return Config(**data)


def load_config(path: str | Path, overrides: Optional[Mapping[str, Any]] = None) -> Config:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config file not found: {p}")
    return load_config_text(p.read_text(), overrides)


def snapshot_config_toml(path: str | Path) -> str:
    """Return the raw TOML text for embedding in HDF5 metadata."""
    return Path(path).read_text()


def json_dumps(obj) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)
