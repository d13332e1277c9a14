"""Configuration dataclasses and loading helpers for the contact sheet tool."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from contact_sheet.exceptions import InvalidInput
from contact_sheet.labels import LabelSettings
from contact_sheet.models import DurationOrPercent, parse_duration
from contact_sheet.repair import DEFAULT_MAX_REPAIRS

DEFAULT_CONFIG_FILE = "contact_sheet.json"
ENV_PREFIX = "CONTACT_SHEET_"


def _parse_bool(value: Any, default: bool) -> bool:
    """Parse truthy/falsy values from multiple input types."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(value, (int, float)):
        return value != 0
    return default


def _parse_positive_int(value: Any, default: Optional[int]) -> Optional[int]:
    """Parse a positive integer with fallback to default."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _parse_non_negative_int(value: Any, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= 0 else default


def _parse_float(value: Any, default: float) -> float:
    """Parse a positive floating point number with fallback to default."""
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _parse_fraction(value: Any, default: float) -> float:
    """Parse a 0..1 fraction; ``"6%"`` style strings are accepted too."""
    if isinstance(value, str) and value.strip().endswith("%"):
        value = _parse_float(value.strip()[:-1], default * 100.0) / 100.0
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if 0.0 <= parsed <= 1.0 else default


def _parse_seconds(value: Any, default: float) -> float:
    """Parse seconds given as a number or a human duration such as ``1500ms``."""
    if value is None:
        return default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value) if value > 0 else default
    try:
        parsed = parse_duration(str(value))
    except InvalidInput:
        return default
    return parsed if parsed > 0 else default


def _parse_offset(value: Any, default: str) -> str:
    if value is None:
        return default
    try:
        DurationOrPercent.parse(str(value))
    except InvalidInput:
        return default
    return str(value)


@dataclass(frozen=True)
class CaptureSettings:
    """Extraction defaults. ``capture_frames`` of ``None`` lets each command pick."""

    capture_frames: Optional[int] = None
    capture_time: float = 1.5
    threads: int = 3
    max_repairs: int = DEFAULT_MAX_REPAIRS
    ignore_start: str = "0s"
    ignore_end: str = "0s"


@dataclass(frozen=True)
class EncodeSettings:
    """AVIF encoding defaults. ``preset`` of ``None`` selects by frame count."""

    crf: int = 30
    preset: Optional[int] = None
    fps: float = 20.0


@dataclass(frozen=True)
class WorkspaceSettings:
    temp_dir: Optional[Path] = None
    keep_temp: bool = False


@dataclass(frozen=True)
class Settings:
    """Root configuration object."""

    capture: CaptureSettings = field(default_factory=CaptureSettings)
    encode: EncodeSettings = field(default_factory=EncodeSettings)
    labels: LabelSettings = field(default_factory=LabelSettings)
    workspace: WorkspaceSettings = field(default_factory=WorkspaceSettings)
    log_file: Optional[Path] = None


def _parse_capture_settings(raw: Mapping[str, Any]) -> CaptureSettings:
    default = CaptureSettings()
    if not isinstance(raw, Mapping):
        return default
    return CaptureSettings(
        capture_frames=_parse_positive_int(raw.get("capture_frames"), default.capture_frames),
        capture_time=_parse_seconds(raw.get("capture_time"), default.capture_time),
        threads=_parse_non_negative_int(raw.get("threads"), default.threads),
        max_repairs=_parse_non_negative_int(raw.get("max_repairs"), default.max_repairs),
        ignore_start=_parse_offset(raw.get("ignore_start"), default.ignore_start),
        ignore_end=_parse_offset(raw.get("ignore_end"), default.ignore_end),
    )


def _parse_encode_settings(raw: Mapping[str, Any]) -> EncodeSettings:
    default = EncodeSettings()
    if not isinstance(raw, Mapping):
        return default
    preset = raw.get("preset")
    return EncodeSettings(
        crf=_parse_non_negative_int(raw.get("crf"), default.crf),
        preset=_parse_non_negative_int(preset, 0) if preset not in (None, "") else default.preset,
        fps=_parse_float(raw.get("fps"), default.fps),
    )


def _parse_label_settings(raw: Mapping[str, Any]) -> LabelSettings:
    default = LabelSettings()
    if not isinstance(raw, Mapping):
        return default
    return LabelSettings(
        scale_percent=_parse_fraction(raw.get("scale_percent"), default.scale_percent),
        margin_percent=_parse_fraction(raw.get("margin_percent"), default.margin_percent),
        padding_percent=_parse_fraction(raw.get("padding_percent"), default.padding_percent),
        background_opacity=_parse_fraction(
            raw.get("background_opacity"),
            default.background_opacity,
        ),
    )


def _parse_workspace_settings(raw: Mapping[str, Any]) -> WorkspaceSettings:
    default = WorkspaceSettings()
    if not isinstance(raw, Mapping):
        return default
    temp_dir = raw.get("temp_dir")
    return WorkspaceSettings(
        temp_dir=Path(temp_dir) if temp_dir else default.temp_dir,
        keep_temp=_parse_bool(raw.get("keep_temp"), default.keep_temp),
    )


def _settings_from_env(env: Mapping[str, str]) -> Settings:
    """Configuration derived from ``CONTACT_SHEET_*`` environment variables."""

    def get(name: str) -> Optional[str]:
        return env.get(f"{ENV_PREFIX}{name}")

    log_file = get("LOG_FILE")
    return Settings(
        capture=_parse_capture_settings({
            "capture_frames": get("CAPTURE_FRAMES"),
            "capture_time": get("CAPTURE_TIME"),
            "threads": get("THREADS"),
            "max_repairs": get("MAX_REPAIRS"),
            "ignore_start": get("IGNORE_START"),
            "ignore_end": get("IGNORE_END"),
        }),
        encode=_parse_encode_settings({
            "crf": get("AVIF_CRF"),
            "preset": get("AVIF_PRESET"),
            "fps": get("AVIF_FPS"),
        }),
        labels=_parse_label_settings({
            "scale_percent": get("LABEL_SCALE"),
            "margin_percent": get("LABEL_MARGIN"),
            "padding_percent": get("LABEL_PADDING"),
            "background_opacity": get("LABEL_OPACITY"),
        }),
        workspace=_parse_workspace_settings({
            "temp_dir": get("TEMP_DIR"),
            "keep_temp": get("KEEP_TEMP"),
        }),
        log_file=Path(log_file) if log_file else None,
    )


def load_config(
    config_path: Path | str = DEFAULT_CONFIG_FILE,
    env: Mapping[str, str] | None = None,
) -> Settings:
    """Load configuration from a JSON file, falling back to environment variables."""
    source_env = os.environ if env is None else env
    path = Path(config_path)

    if path.exists():
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise InvalidInput(f"Invalid configuration file {path}: {exc}") from exc
        if not isinstance(data, Mapping):
            raise InvalidInput(f"Configuration file {path} must contain a JSON object")
        log_file = data.get("log_file")
        return Settings(
            capture=_parse_capture_settings(data.get("capture", {})),
            encode=_parse_encode_settings(data.get("encode", {})),
            labels=_parse_label_settings(data.get("labels", {})),
            workspace=_parse_workspace_settings(data.get("workspace", {})),
            log_file=Path(log_file) if log_file else None,
        )

    return _settings_from_env(source_env)


__all__ = [
    "CaptureSettings",
    "DEFAULT_CONFIG_FILE",
    "EncodeSettings",
    "LabelSettings",
    "Settings",
    "WorkspaceSettings",
    "load_config",
    "_parse_bool",
    "_parse_fraction",
    "_parse_positive_int",
]
