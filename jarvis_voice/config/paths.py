"""Filesystem helpers for the voice console."""

from __future__ import annotations

from pathlib import Path

from .settings import Settings


def project_root() -> Path:
    """Return the repository root."""
    return Path(__file__).resolve().parents[2]


def models_dir() -> Path:
    """Directory storing speech models."""
    root = project_root() / "resources" / "models"
    root.mkdir(parents=True, exist_ok=True)
    return root


def log_dir(settings: Settings) -> Path:
    """Directory receiving the JSON log files."""
    root = Path(settings.log_dir)
    if not root.is_absolute():
        root = Path.cwd() / root
    root.mkdir(parents=True, exist_ok=True)
    return root


def find_model(root: Path, extension: str) -> Path:
    """Return the first file under ``root`` ending with ``extension``."""
    for candidate in sorted(root.rglob(f"*{extension}")):
        return candidate
    raise FileNotFoundError(f"No {extension} file found under {root}")
