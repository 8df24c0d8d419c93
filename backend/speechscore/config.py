from __future__ import annotations

from dataclasses import dataclass
import json
import os
from urllib.parse import urlparse

DEFAULT_SCORE_SCALE = 110.0
DEFAULT_INVERTED_CATEGORIES = ("Nervousness",)


class SettingsError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    supabase_url: str
    supabase_service_role_key: str
    score_scale: float
    category_ranges: dict[str, tuple[int, int]] | None
    inverted_categories: tuple[str, ...]


def _require_env(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise SettingsError(f"Missing required environment variable: {name}")
    return value


def _optional_env(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


def _require_url(name: str, value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise SettingsError(f"Invalid URL for {name}: {value}")
    return value


def _positive_float(name: str, raw: str | None, default: float) -> float:
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise SettingsError(f"Invalid number for {name}: {raw}") from exc
    if value <= 0:
        raise SettingsError(f"{name} must be positive, got {raw}")
    return value


def _category_ranges(raw: str | None) -> dict[str, tuple[int, int]] | None:
    if raw is None:
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SettingsError(f"CATEGORY_RANGES is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict) or not payload:
        raise SettingsError("CATEGORY_RANGES must be a non-empty JSON object")
    ranges: dict[str, tuple[int, int]] = {}
    for name, bounds in payload.items():
        if (
            not isinstance(bounds, list)
            or len(bounds) != 2
            or not all(isinstance(item, int) for item in bounds)
            or bounds[0] > bounds[1]
        ):
            raise SettingsError(f"Invalid id range for category {name}: {bounds}")
        ranges[name] = (bounds[0], bounds[1])
    return ranges


def _inverted_categories(raw: str | None) -> tuple[str, ...]:
    if raw is None:
        return DEFAULT_INVERTED_CATEGORIES
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def load_settings() -> Settings:
    supabase_url = _require_url("SUPABASE_URL", _require_env("SUPABASE_URL"))
    supabase_service_role_key = _require_env("SUPABASE_SERVICE_ROLE_KEY")
    score_scale = _positive_float(
        "SCORE_SCALE", _optional_env("SCORE_SCALE"), DEFAULT_SCORE_SCALE
    )
    category_ranges = _category_ranges(_optional_env("CATEGORY_RANGES"))
    inverted_categories = _inverted_categories(_optional_env("INVERTED_CATEGORIES"))

    return Settings(
        supabase_url=supabase_url,
        supabase_service_role_key=supabase_service_role_key,
        score_scale=score_scale,
        category_ranges=category_ranges,
        inverted_categories=inverted_categories,
    )
