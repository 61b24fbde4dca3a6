"""Helpers for loading reader configuration profiles."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import ErrorCode, ReaderError
from .models import GlobalSettings, ReaderConfig, ReaderSettings

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "defaults.json"
DEFAULT_PROFILE = "default"
ALLOWED_ERROR_POLICIES = {"fail-fast", "strict", "replace"}


@dataclass(slots=True)
class ConfigDocument:
    source: Path
    version: int
    global_settings: GlobalSettings
    profiles: Dict[str, ReaderSettings]


def load_reader_config(
    profile: str = DEFAULT_PROFILE,
    *,
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None,
) -> ReaderConfig:
    """Load configuration JSON, validate it, and resolve a specific profile."""

    document = load_config_document(
        profile_name=profile,
        config_path=config_path,
        overrides=overrides,
    )
    return ReaderConfig(global_settings=document.global_settings, profile=document.profiles[profile])


def load_config_document(
    *,
    profile_name: Optional[str] = None,
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None,
) -> ConfigDocument:
    cfg_path = config_path or DEFAULT_CONFIG_PATH
    raw = _read_config_json(cfg_path)
    if not isinstance(raw, Mapping):
        raise ReaderError(ErrorCode.CONFIG_ERROR, f"Config file '{cfg_path}' must contain an object")

    version = _require_positive_int(raw.get("version"), "version", cfg_path)
    global_section = raw.get("global")
    if not isinstance(global_section, Mapping):
        raise ReaderError(ErrorCode.CONFIG_ERROR, f"'global' section missing in {cfg_path}")

    overrides = overrides or {}
    global_data = {**global_section, **(overrides.get("global") or {})}
    global_settings = _build_global_settings(global_data, cfg_path)

    profiles_section = raw.get("profiles")
    if not isinstance(profiles_section, Mapping) or not profiles_section:
        raise ReaderError(ErrorCode.CONFIG_ERROR, f"'profiles' section missing in {cfg_path}")

    profile_overrides = overrides.get("profile") or {}
    profiles: Dict[str, ReaderSettings] = {}
    for name, profile_data in profiles_section.items():
        if not isinstance(profile_data, Mapping):
            raise ReaderError(
                ErrorCode.CONFIG_ERROR,
                f"Profile '{name}' must be an object in {cfg_path}",
            )
        merged = dict(profile_data)
        if profile_name and name == profile_name and profile_overrides:
            merged = {**merged, **profile_overrides}
        profiles[name] = _build_reader_settings(name, merged, cfg_path)

    if profile_name and profile_name not in profiles:
        raise ReaderError(
            ErrorCode.CONFIG_ERROR,
            f"Profile '{profile_name}' not found in {cfg_path}",
            context={"available": sorted(profiles)},
        )

    return ConfigDocument(
        source=cfg_path,
        version=version,
        global_settings=global_settings,
        profiles=profiles,
    )


def error_mode_from_policy(policy: str) -> str:
    """Translate human-friendly error policy into Python's decoding error handler."""

    return "strict" if policy.lower() in {"fail-fast", "strict"} else "replace"


# ---------------------------------------------------------------------------
# Internal helpers


def _read_config_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except FileNotFoundError as exc:
        raise ReaderError(ErrorCode.CONFIG_ERROR, f"Config file '{path}' not found") from exc
    except json.JSONDecodeError as exc:
        raise ReaderError(ErrorCode.CONFIG_ERROR, f"Config file '{path}' is not valid JSON: {exc}") from exc


def _build_global_settings(data: Mapping[str, Any], source: Path) -> GlobalSettings:
    encoding = _require_string(data.get("encoding", GlobalSettings().encoding), "global.encoding", source)
    error_policy = _normalize_error_policy(
        data.get("error_policy", GlobalSettings().error_policy),
        source,
    )
    return GlobalSettings(encoding=encoding, error_policy=error_policy)


def _build_reader_settings(name: str, data: Mapping[str, Any], source: Path) -> ReaderSettings:
    prefix = f"profiles.{name}"
    required_fields = ("description", "buffer_size")
    missing = [field for field in required_fields if field not in data]
    if missing:
        raise ReaderError(
            ErrorCode.CONFIG_ERROR,
            f"Profile '{name}' missing fields {missing} in {source}",
        )

    description = _require_string(data.get("description"), f"{prefix}.description", source)
    buffer_size = _require_positive_int(data.get("buffer_size"), f"{prefix}.buffer_size", source)
    max_lookahead = _require_positive_int(
        data.get("max_lookahead", ReaderSettings().max_lookahead), f"{prefix}.max_lookahead", source
    )
    if max_lookahead > buffer_size:
        raise ReaderError(
            ErrorCode.CONFIG_ERROR,
            f"{prefix}.max_lookahead ({max_lookahead}) must not exceed buffer_size ({buffer_size}) in {source}",
        )

    return ReaderSettings(
        description=description,
        buffer_size=buffer_size,
        max_lookahead=max_lookahead,
    )


def _normalize_error_policy(value: Any, source: Path) -> str:
    policy = _require_string(value, "global.error_policy", source).lower()
    if policy not in ALLOWED_ERROR_POLICIES:
        allowed = ", ".join(sorted(ALLOWED_ERROR_POLICIES))
        raise ReaderError(
            ErrorCode.CONFIG_ERROR,
            f"Unsupported error_policy '{value}' in {source}. Allowed: {allowed}",
        )
    return "fail-fast" if policy in {"fail-fast", "strict"} else "replace"


def _require_string(value: Any, field: str, source: Path) -> str:
    if not isinstance(value, str):
        raise ReaderError(ErrorCode.CONFIG_ERROR, f"{field} must be a string in {source}")
    text = value.strip()
    if not text:
        raise ReaderError(ErrorCode.CONFIG_ERROR, f"{field} must be non-empty in {source}")
    return text


def _require_positive_int(value: Any, field: str, source: Path) -> int:
    if isinstance(value, bool):
        raise ReaderError(ErrorCode.CONFIG_ERROR, f"{field} must be an integer in {source}")
    try:
        num = int(value)
    except (TypeError, ValueError) as exc:
        raise ReaderError(
            ErrorCode.CONFIG_ERROR,
            f"{field} must be an integer in {source}",
        ) from exc
    if num <= 0:
        raise ReaderError(
            ErrorCode.CONFIG_ERROR,
            f"{field} must be greater than zero in {source}",
        )
    return num
