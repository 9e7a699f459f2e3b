from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict

_LOCALE_DIR = Path(__file__).parent
_cache: dict[str, dict[str, Any]] = {}


class Locale(BaseModel):
    """Every reply the bot can send. Placeholders use ``str.format`` names."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    start: str
    start_registration_open: str
    start_registration_closed: str
    help: str
    about: str
    directive: str
    token: str
    create_success: str
    create_closed: str
    already_registered: str
    not_registered: str
    pending_action: str
    nothing_to_confirm: str
    delete_prompt: str
    delete_registration_closed: str
    regenerate_prompt: str
    confirm_deletion: str
    confirm_regeneration: str
    cancel_success: str
    error_invalid_command: str
    error_not_understood: str


def load_locale(name: str) -> dict[str, Any]:
    """Load a YAML string table by name (without extension). Results are cached."""
    if name in _cache:
        return _cache[name]

    path = _LOCALE_DIR / f"{name}.yaml"
    if not path.exists():
        raise FileNotFoundError(f"Locale file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data: dict[str, Any] = yaml.safe_load(f)

    _cache[name] = data
    return data


def get_locale(name: str) -> Locale:
    """Load and validate a string table, stripping surrounding whitespace from each entry."""
    strings = load_locale(name)
    return Locale.model_validate({key: str(value).strip() for key, value in strings.items()})
