"""Interpreter settings and ``scorch.yaml`` project manifests."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

PROJECT_FILENAME = "scorch.yaml"
SOURCE_SUFFIX = ".scorch"

# Largest accepted depth limits; deeper settings overflow the Python stack
DEPTH_CEILINGS = {"max_parse_depth": 128, "max_call_depth": 64}

logger = logging.getLogger(__name__)


@dataclass
class InterpreterConfig:
    """Limits and I/O streams for one interpreter."""

    max_parse_depth: int = 64
    max_call_depth: int = 48
    log_level: str = "WARNING"
    stdout: Optional[TextIO] = field(default=None, repr=False)
    stdin: Optional[TextIO] = field(default=None, repr=False)

    # Keys accepted from YAML; streams are only settable from Python
    FILE_KEYS = ("max_parse_depth", "max_call_depth", "log_level")

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "InterpreterConfig":
        unknown = sorted(set(data) - set(cls.FILE_KEYS))
        if unknown:
            raise ValueError(f"unknown interpreter settings: {', '.join(unknown)}")
        return cls(**data)

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        for name, ceiling in DEPTH_CEILINGS.items():
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
            if value > ceiling:
                raise ValueError(f"{name} must be at most {ceiling}, got {value}")
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ValueError(f"unknown log level: {self.log_level!r}")

    def to_mapping(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name in self.FILE_KEYS}


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"file not found: {path}")
    import yaml

    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def load_config(path: Path | str) -> InterpreterConfig:
    """Read interpreter settings from a YAML mapping."""
    return InterpreterConfig.from_mapping(_load_yaml(Path(path)))


@dataclass
class Project:
    """A ``scorch.yaml`` manifest: ordered modules plus interpreter settings."""

    root: Path
    name: str
    modules: List[Path] = field(default_factory=list)
    config: InterpreterConfig = field(default_factory=InterpreterConfig)

    def read_sources(self) -> List[str]:
        sources = []
        for module in self.modules:
            with module.open("r", encoding="utf-8") as fp:
                sources.append(fp.read())
        return sources


def load_project(path: Path | str) -> Project:
    """
    Load a project manifest.

    ``path`` may name the manifest itself or the directory holding
    ``scorch.yaml``. Module paths are resolved relative to the manifest.
    """
    manifest = Path(path)
    if manifest.is_dir():
        manifest = manifest / PROJECT_FILENAME
    data = _load_yaml(manifest)
    root = manifest.parent

    modules = data.get("modules")
    if not isinstance(modules, list) or not modules:
        raise ValueError(f"{manifest}: 'modules' must be a non-empty list of source paths")
    resolved = []
    for entry in modules:
        module_path = (root / str(entry)).resolve()
        if not module_path.exists():
            raise FileNotFoundError(f"module not found: {module_path}")
        if module_path.suffix != SOURCE_SUFFIX:
            logger.warning("module %s does not use the %s extension", module_path, SOURCE_SUFFIX)
        resolved.append(module_path)

    config = InterpreterConfig.from_mapping(data.get("interpreter") or {})
    return Project(
        root=root,
        name=str(data.get("name") or root.name),
        modules=resolved,
        config=config,
    )
