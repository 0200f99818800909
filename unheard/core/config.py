"""
unheard/core/config.py — Typed configuration loader for UNHEARD.

Loads config/unheard.yaml and validates all values into typed dataclasses.
All downstream modules take these dataclasses; never read YAML directly.
Configuration is constructor-time only and immutable afterwards.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from unheard.core.constants import C, ComplexityLevel

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
# Dataclass hierarchy, mirrors unheard.yaml
# ──────────────────────────────────────────────


@dataclass(frozen=True)
class DispatchConfig:
    """Dispatcher behaviour: confidence threshold, deadline and fallback switch."""

    min_confidence_threshold: float = C.DEFAULT_MIN_CONFIDENCE
    max_processing_time_ms: int = C.DEFAULT_MAX_PROCESSING_MS
    auto_fallback: bool = True

    @property
    def deadline_seconds(self) -> float:
        """Deadline expressed in seconds, as ``Thread.join`` expects."""
        return self.max_processing_time_ms / 1000.0


@dataclass(frozen=True)
class AudioConfig:
    """Audio quality thresholds and preprocessing targets."""

    target_sample_rate: int = C.TARGET_SAMPLE_RATE
    clip_threshold: float = C.CLIP_THRESHOLD
    too_quiet_rms: float = C.TOO_QUIET_RMS
    low_level_rms: float = C.LOW_LEVEL_RMS
    too_loud_peak: float = C.TOO_LOUD_PEAK
    target_rms: float = C.TARGET_RMS
    peak_ceiling: float = C.PEAK_CEILING
    snr_frame_ms: float = C.SNR_FRAME_MS
    snr_good_db: float = C.SNR_GOOD_DB
    min_duration_seconds: float = C.MIN_AUDIO_SECONDS


@dataclass(frozen=True)
class ImageConfig:
    """Image quality thresholds and correction strengths."""

    too_dark: float = C.TOO_DARK
    too_bright: float = C.TOO_BRIGHT
    blur_threshold: float = C.BLUR_THRESHOLD
    low_contrast: float = C.LOW_CONTRAST
    sharpness_scale: float = C.SHARPNESS_SCALE
    brighten_factor: float = 1.5
    darken_factor: float = 0.7
    contrast_factor: float = 1.3
    convert_to_grayscale: bool = True


@dataclass(frozen=True)
class VoiceConfig:
    """Voice processor settings."""

    default_confidence: float = C.VOICE_DEFAULT_CONFIDENCE
    min_quality_score: float = 0.2


@dataclass(frozen=True)
class SymbolConfig:
    """Symbol processor settings."""

    default_complexity: str = ComplexityLevel.STANDARD.value
    fallback_confidence: float = C.SYMBOL_FALLBACK_CONFIDENCE


@dataclass(frozen=True)
class SignConfig:
    """Sign processor settings."""

    placeholder_confidence: float = C.SIGN_PLACEHOLDER_CONFIDENCE


@dataclass(frozen=True)
class CameraConfig:
    """Camera processor settings."""

    preprocess: bool = True


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    log_dir: str = "logs"


@dataclass(frozen=True)
class UnheardConfig:
    """Root configuration object — single source of truth for all settings."""

    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    image: ImageConfig = field(default_factory=ImageConfig)
    voice: VoiceConfig = field(default_factory=VoiceConfig)
    symbol: SymbolConfig = field(default_factory=SymbolConfig)
    sign: SignConfig = field(default_factory=SignConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# ──────────────────────────────────────────────
# Loader
# ──────────────────────────────────────────────

_SECTIONS: dict[str, type] = {
    "dispatch": DispatchConfig,
    "audio": AudioConfig,
    "image": ImageConfig,
    "voice": VoiceConfig,
    "symbol": SymbolConfig,
    "sign": SignConfig,
    "camera": CameraConfig,
    "logging": LoggingConfig,
}


def _merge(defaults: dict, overrides: dict) -> dict:
    """
    Deep-merge *overrides* into *defaults*, returning a new dict.

    Nested dicts are merged recursively; scalar values in overrides win.

    Args:
        defaults: Base dictionary of default values.
        overrides: Override values loaded from YAML.

    Returns:
        A new dict with overrides applied on top of defaults.
    """
    result: dict = dict(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def _resolve_path(config_path: Path | str | None) -> Optional[Path]:
    """Apply the search order and return the config file to load, if any."""
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.exists():
            raise FileNotFoundError(f"Config file not found: {resolved}")
        return resolved
    if "UNHEARD_CONFIG" in os.environ:
        resolved = Path(os.environ["UNHEARD_CONFIG"])
        if not resolved.exists():
            raise FileNotFoundError(
                f"UNHEARD_CONFIG points to missing file: {resolved}"
            )
        return resolved
    # Auto-discover: walk up from this file to find config/unheard.yaml
    here = Path(__file__).resolve()
    for parent in [here.parent.parent.parent, here.parent.parent]:
        candidate = parent / "config" / "unheard.yaml"
        if candidate.exists():
            return candidate
    return None


def load_config(
    config_path: Path | str | None = None,
    overrides: Optional[dict] = None,
) -> UnheardConfig:
    """
    Load, validate, and return an UnheardConfig from a YAML file.

    The search order for the config file is:
    1. *config_path* argument (if provided)
    2. UNHEARD_CONFIG environment variable
    3. ``config/unheard.yaml`` relative to the project root
    4. Built-in defaults (no file required)

    Args:
        config_path: Optional path to an ``unheard.yaml`` file.
        overrides: Optional nested dict applied on top of the file values
            (e.g. ``{"dispatch": {"auto_fallback": False}}``).

    Returns:
        A fully populated and frozen :class:`UnheardConfig` instance.

    Raises:
        ValueError: If a YAML field is unknown or has an invalid type or value.
        FileNotFoundError: If an explicitly requested file does not exist.
    """
    resolved_path = _resolve_path(config_path)

    raw: dict = {}
    if resolved_path is not None:
        logger.info("Loading config from: %s", resolved_path)
        with resolved_path.open("r", encoding="utf-8") as fh:
            loaded = yaml.safe_load(fh) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file must be a YAML mapping, got: {type(loaded)}")
        raw = loaded
    else:
        logger.info("No config file found, using built-in defaults")

    if overrides:
        raw = _merge(raw, overrides)

    unknown = set(raw) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown config section(s): {sorted(unknown)}")

    # Build sub-configs from raw dict, falling back to defaults for missing keys
    sections: dict[str, object] = {}
    try:
        for name, cls in _SECTIONS.items():
            section_raw = raw.get(name) or {}
            if not isinstance(section_raw, dict):
                raise ValueError(f"Config section '{name}' must be a mapping")
            sections[name] = cls(**section_raw)
    except TypeError as exc:
        raise ValueError(f"Invalid config value: {exc}") from exc

    config = UnheardConfig(**sections)  # type: ignore[arg-type]
    _validate_config(config)
    logger.debug("Config loaded: %s", config)
    return config


# Accepted Python types per annotated field type (annotations are strings here)
_FIELD_TYPES: dict[str, tuple[type, ...]] = {
    "bool": (bool,),
    "int": (int,),
    "float": (int, float),
    "str": (str,),
}


def _check_types(config: UnheardConfig) -> None:
    """Reject values whose YAML type does not match the field, before range checks."""
    for section_name in _SECTIONS:
        section = getattr(config, section_name)
        for f in fields(section):
            accepted = _FIELD_TYPES.get(str(f.type))
            if accepted is None:
                continue
            value = getattr(section, f.name)
            if (isinstance(value, bool) and bool not in accepted) or not isinstance(value, accepted):
                raise ValueError(
                    f"{section_name}.{f.name} must be of type {f.type}, "
                    f"got {type(value).__name__} {value!r}"
                )


def _validate_config(config: UnheardConfig) -> None:
    """
    Validate cross-field constraints on the loaded configuration.

    Raises:
        ValueError: If any configured value violates a hard constraint.
    """
    _check_types(config)

    dispatch = config.dispatch
    if not (0.0 <= dispatch.min_confidence_threshold <= 1.0):
        raise ValueError(
            "dispatch.min_confidence_threshold must be in [0, 1], "
            f"got {dispatch.min_confidence_threshold}"
        )
    if dispatch.max_processing_time_ms <= 0:
        raise ValueError(
            f"dispatch.max_processing_time_ms must be positive, got {dispatch.max_processing_time_ms}"
        )
    if not isinstance(dispatch.auto_fallback, bool):
        raise ValueError(f"dispatch.auto_fallback must be a bool, got {dispatch.auto_fallback!r}")

    audio = config.audio
    if audio.target_sample_rate <= 0:
        raise ValueError(f"audio.target_sample_rate must be positive, got {audio.target_sample_rate}")
    if not (0.0 < audio.too_quiet_rms < audio.target_rms):
        raise ValueError(
            f"audio.too_quiet_rms must be in (0, target_rms), got {audio.too_quiet_rms}"
        )
    if not (0.0 < audio.peak_ceiling <= 1.0):
        raise ValueError(f"audio.peak_ceiling must be in (0, 1], got {audio.peak_ceiling}")
    if audio.snr_frame_ms <= 0 or audio.snr_good_db <= 0:
        raise ValueError("audio.snr_frame_ms and audio.snr_good_db must be positive")

    image = config.image
    if not (0.0 <= image.too_dark < image.too_bright <= 1.0):
        raise ValueError(
            "image thresholds must satisfy 0 <= too_dark < too_bright <= 1, "
            f"got too_dark={image.too_dark}, too_bright={image.too_bright}"
        )
    if image.brighten_factor <= 1.0 or not (0.0 < image.darken_factor < 1.0):
        raise ValueError("image.brighten_factor must be > 1 and image.darken_factor in (0, 1)")

    for name, value in (
        ("voice.default_confidence", config.voice.default_confidence),
        ("voice.min_quality_score", config.voice.min_quality_score),
        ("symbol.fallback_confidence", config.symbol.fallback_confidence),
        ("sign.placeholder_confidence", config.sign.placeholder_confidence),
    ):
        if not (0.0 <= value <= 1.0):
            raise ValueError(f"{name} must be in [0, 1], got {value}")

    valid_levels = {level.value for level in ComplexityLevel}
    if config.symbol.default_complexity not in valid_levels:
        raise ValueError(
            f"symbol.default_complexity must be one of {sorted(valid_levels)}, "
            f"got '{config.symbol.default_complexity}'"
        )
    if config.logging.level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ValueError(f"logging.level is not a valid level: '{config.logging.level}'")
