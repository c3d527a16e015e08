"""Prompt loading utilities."""

from __future__ import annotations

import re
from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"

_VERSION = re.compile(r"^v\d{3}$")


def prompt_path(prompt_version: str) -> Path:
    """Resolve a classifier prompt file from a version like 'v001'."""
    if not _VERSION.match(prompt_version):
        raise ValueError("prompt_version must look like 'v001'")
    return PROMPTS_DIR / f"{prompt_version}.md"


def load_prompt(prompt_version: str) -> str:
    """Load a prompt template as UTF-8 text."""
    path = prompt_path(prompt_version)
    if not path.exists():
        raise FileNotFoundError(f"Prompt file not found: {path}")
    return path.read_text(encoding="utf-8").strip()
