"""
Configuration management for the face detection request handler.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The handler MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No detection logic, I/O, or model loading belongs here.

Non-goals:
    - No dynamic reloading.
    - No database-backed or remote configuration.
"""

import enum
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import parse_qs

import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: face_detector/config.py → repo root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


class OutputMode(str, enum.Enum):
    """Response shape selected once per request."""

    JSON = "json"
    IMAGE = "image"
    JSON_IMAGE = "json_image"

    @property
    def renders_image(self) -> bool:
        return self is not OutputMode.JSON


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelConfig:
    """Classifier model configuration.

    Attributes:
        engine: Cascade engine — 'haar' (OpenCV) or 'pico' (binary facefinder).
        haar_cascade: File name of the Haar cascade XML.
        haar_dir: Directory holding the Haar cascade. None means the
                  cascades bundled with opencv-python.
        pico_path: Path to the pico binary cascade (relative to project root).
    """

    engine: str = "haar"
    haar_cascade: str = "haarcascade_frontalface_default.xml"
    haar_dir: Optional[str] = None
    pico_path: str = "data/facefinder"


@dataclass(frozen=True)
class DetectionConfig:
    """Cascade search and scoring parameters.

    Attributes:
        min_size: Smallest face side length searched, in pixels.
        max_size: Largest face side length searched, in pixels.
        shift_factor: Window step as a fraction of the window size.
        scale_factor: Growth factor between successive window sizes.
        iou_threshold: Overlap above which candidates are merged.
        quality_threshold: Score a face must exceed to be reported.
    """

    min_size: int = 20
    max_size: int = 2000
    shift_factor: float = 0.1
    scale_factor: float = 1.1
    iou_threshold: float = 0.2
    quality_threshold: float = 5.0


@dataclass(frozen=True)
class InputConfig:
    """Request body interpretation.

    Attributes:
        mode: 'inline' (raw or base64 image bytes) or 'url'.
        fetch_timeout: Seconds allowed for the URL fetch.
        max_bytes: Largest accepted image payload.
    """

    mode: str = "inline"
    fetch_timeout: float = 10.0
    max_bytes: int = 10 * 1024 * 1024


@dataclass(frozen=True)
class StagingConfig:
    """Where transient working copies are written.

    Attributes:
        scratch_dir: Writable directory. None means the system temp dir.
        prefix: File name prefix for staged images.
    """

    scratch_dir: Optional[str] = None
    prefix: str = "image"


@dataclass(frozen=True)
class OutputConfig:
    """Response configuration.

    Attributes:
        mode: 'json', 'image' or 'json_image'. None means not set, so the
              request's 'output' query parameter decides.
        jpeg_quality: Encoding quality of the annotated image (1-100).
    """

    mode: Optional[str] = None
    jpeg_quality: int = 100


@dataclass(frozen=True)
class VisualizationConfig:
    """Marker rendering parameters.

    Attributes:
        marker: 'rectangle' or 'circle'.
        color: BGR stroke color.
        thickness: Stroke width in pixels.
        legacy_rectangles: Report Max as (scale, scale) instead of the
                           bottom-right corner.
    """

    marker: str = "rectangle"
    color: Tuple[int, int, int] = (0, 0, 255)
    thickness: int = 3
    legacy_rectangles: bool = True


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    input: InputConfig = field(default_factory=InputConfig)
    staging: StagingConfig = field(default_factory=StagingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_ENGINES = {"haar", "pico"}
_VALID_INPUT_MODES = {"inline", "url"}
_VALID_OUTPUT_MODES = {m.value for m in OutputMode}
_VALID_MARKERS = {"rectangle", "circle"}


def _validate(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    if config.model.engine not in _VALID_ENGINES:
        raise ValueError(
            f"Invalid model.engine: '{config.model.engine}'. "
            f"Must be one of {_VALID_ENGINES}."
        )

    if config.input.mode not in _VALID_INPUT_MODES:
        raise ValueError(
            f"Invalid input.mode: '{config.input.mode}'. "
            f"Must be one of {_VALID_INPUT_MODES}."
        )

    if config.output.mode is not None and config.output.mode not in _VALID_OUTPUT_MODES:
        raise ValueError(
            f"Invalid output.mode: '{config.output.mode}'. "
            f"Must be one of {_VALID_OUTPUT_MODES}."
        )

    if config.visualization.marker not in _VALID_MARKERS:
        raise ValueError(
            f"Invalid visualization.marker: '{config.visualization.marker}'. "
            f"Must be one of {_VALID_MARKERS}."
        )

    det = config.detection
    if det.min_size <= 0 or det.max_size < det.min_size:
        raise ValueError(
            f"detection.min_size must be positive and not above max_size, "
            f"got min_size={det.min_size}, max_size={det.max_size}."
        )

    if det.scale_factor <= 1.0:
        raise ValueError(
            f"detection.scale_factor must be greater than 1.0, "
            f"got {det.scale_factor}."
        )

    if not (0.0 < det.shift_factor <= 1.0):
        raise ValueError(
            f"detection.shift_factor must be in (0.0, 1.0], "
            f"got {det.shift_factor}."
        )

    if not (0.0 <= det.iou_threshold <= 1.0):
        raise ValueError(
            f"detection.iou_threshold must be in [0.0, 1.0], "
            f"got {det.iou_threshold}."
        )

    if config.input.fetch_timeout <= 0:
        raise ValueError(
            f"input.fetch_timeout must be positive, "
            f"got {config.input.fetch_timeout}."
        )

    if config.input.max_bytes <= 0:
        raise ValueError(
            f"input.max_bytes must be positive, got {config.input.max_bytes}."
        )

    if not (1 <= config.output.jpeg_quality <= 100):
        raise ValueError(
            f"output.jpeg_quality must be in [1, 100], "
            f"got {config.output.jpeg_quality}."
        )

    if config.visualization.thickness <= 0:
        raise ValueError(
            f"visualization.thickness must be positive, "
            f"got {config.visualization.thickness}."
        )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_tuple(value, expected_len: int, cast_type=float):
    """Convert a list from YAML into a tuple of the expected type and length."""
    if isinstance(value, (list, tuple)):
        if len(value) != expected_len:
            raise ValueError(
                f"Expected {expected_len} values, got {len(value)}: {value}"
            )
        return tuple(cast_type(v) for v in value)
    return value


def _parse_bool(value) -> bool:
    """Accept YAML booleans as well as env-style strings."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _optional_str(value) -> Optional[str]:
    if value is None or str(value).strip() == "":
        return None
    return str(value)


def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    if "engine" in raw:
        kwargs["engine"] = str(raw["engine"]).lower()
    if "haar_cascade" in raw:
        kwargs["haar_cascade"] = str(raw["haar_cascade"])
    if "haar_dir" in raw:
        kwargs["haar_dir"] = _optional_str(raw["haar_dir"])
    if "pico_path" in raw:
        kwargs["pico_path"] = str(raw["pico_path"])
    return ModelConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    for key in ("min_size", "max_size"):
        if key in raw:
            kwargs[key] = int(raw[key])
    for key in ("shift_factor", "scale_factor", "iou_threshold", "quality_threshold"):
        if key in raw:
            kwargs[key] = float(raw[key])
    return DetectionConfig(**kwargs)


def _build_input_config(raw: dict) -> InputConfig:
    """Build InputConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        kwargs["mode"] = str(raw["mode"]).strip().lower()
    if "fetch_timeout" in raw:
        kwargs["fetch_timeout"] = float(raw["fetch_timeout"])
    if "max_bytes" in raw:
        kwargs["max_bytes"] = int(raw["max_bytes"])
    return InputConfig(**kwargs)


def _build_staging_config(raw: dict) -> StagingConfig:
    """Build StagingConfig from a raw YAML dict."""
    kwargs = {}
    if "scratch_dir" in raw:
        kwargs["scratch_dir"] = _optional_str(raw["scratch_dir"])
    if "prefix" in raw:
        kwargs["prefix"] = str(raw["prefix"])
    return StagingConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        mode = _optional_str(raw["mode"])
        kwargs["mode"] = mode.strip().lower() if mode is not None else None
    if "jpeg_quality" in raw:
        kwargs["jpeg_quality"] = int(raw["jpeg_quality"])
    return OutputConfig(**kwargs)


def _build_visualization_config(raw: dict) -> VisualizationConfig:
    """Build VisualizationConfig from a raw YAML dict."""
    kwargs = {}
    if "marker" in raw:
        kwargs["marker"] = str(raw["marker"]).lower()
    if "color" in raw:
        kwargs["color"] = _parse_tuple(raw["color"], 3, int)
    if "thickness" in raw:
        kwargs["thickness"] = int(raw["thickness"])
    if "legacy_rectangles" in raw:
        kwargs["legacy_rectangles"] = _parse_bool(raw["legacy_rectangles"])
    return VisualizationConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "FACE_DETECT_"

# Switches set by the function deployment itself (no prefix).
_INPUT_MODE_ENV = "input_mode"
_OUTPUT_MODE_ENV = "output_mode"


def _apply_deployment_env(raw: dict) -> dict:
    """Apply the unprefixed deployment switches.

    These are read leniently: 'url' selects URL input and anything else
    means inline; an output_mode that is set but empty or unknown means
    json. A set output_mode always beats the request query string.
    """
    input_mode = os.environ.get(_INPUT_MODE_ENV)
    if input_mode is not None:
        value = input_mode.strip().lower()
        if value != "url":
            if value not in ("", "inline"):
                logger.warning("Unknown %s '%s', using inline.", _INPUT_MODE_ENV, input_mode)
            value = "inline"
        raw.setdefault("input", {})["mode"] = value

    output_mode = os.environ.get(_OUTPUT_MODE_ENV)
    if output_mode is not None:
        value = output_mode.strip().lower()
        if value not in _VALID_OUTPUT_MODES:
            if value:
                logger.warning("Unknown %s '%s', using json.", _OUTPUT_MODE_ENV, output_mode)
            value = OutputMode.JSON.value
        raw.setdefault("output", {})["mode"] = value

    return raw


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        FACE_DETECT_DETECTION_MIN_SIZE=40
        FACE_DETECT_VISUALIZATION_MARKER=circle
    """
    env_map = {
        f"{_ENV_PREFIX}MODEL_ENGINE": ("model", "engine"),
        f"{_ENV_PREFIX}MODEL_PICO_PATH": ("model", "pico_path"),
        f"{_ENV_PREFIX}DETECTION_MIN_SIZE": ("detection", "min_size"),
        f"{_ENV_PREFIX}DETECTION_MAX_SIZE": ("detection", "max_size"),
        f"{_ENV_PREFIX}DETECTION_SHIFT_FACTOR": ("detection", "shift_factor"),
        f"{_ENV_PREFIX}DETECTION_SCALE_FACTOR": ("detection", "scale_factor"),
        f"{_ENV_PREFIX}DETECTION_IOU_THRESHOLD": ("detection", "iou_threshold"),
        f"{_ENV_PREFIX}DETECTION_QUALITY_THRESHOLD": ("detection", "quality_threshold"),
        f"{_ENV_PREFIX}INPUT_MODE": ("input", "mode"),
        f"{_ENV_PREFIX}INPUT_FETCH_TIMEOUT": ("input", "fetch_timeout"),
        f"{_ENV_PREFIX}STAGING_SCRATCH_DIR": ("staging", "scratch_dir"),
        f"{_ENV_PREFIX}OUTPUT_MODE": ("output", "mode"),
        f"{_ENV_PREFIX}VISUALIZATION_MARKER": ("visualization", "marker"),
        f"{_ENV_PREFIX}VISUALIZATION_LEGACY_RECTANGLES": ("visualization", "legacy_rectangles"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            logger.debug("Config override from env: %s=%s", env_var, value)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration.

    Precedence (highest → lowest):
        Deployment switches (input_mode, output_mode) >
        FACE_DETECT_* variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the handler runs entirely on defaults.

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If any configuration value is invalid.
        yaml.YAMLError: If the YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.is_absolute():
            resolved = _PROJECT_ROOT / resolved

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)
    raw = _apply_deployment_env(raw)

    # --- Build typed configs ---
    config = AppConfig(
        model=_build_model_config(raw.get("model", {})),
        detection=_build_detection_config(raw.get("detection", {})),
        input=_build_input_config(raw.get("input", {})),
        staging=_build_staging_config(raw.get("staging", {})),
        output=_build_output_config(raw.get("output", {})),
        visualization=_build_visualization_config(raw.get("visualization", {})),
    )

    # --- Validate ---
    _validate(config)

    logger.debug("Configuration loaded: %s", config)
    return config


def resolve_output_mode(config: AppConfig, query: Optional[str] = None) -> OutputMode:
    """Pick the response shape for one request.

    An explicitly configured output.mode wins; otherwise the 'output'
    parameter of the request query string is used. Anything unknown or
    missing falls back to JSON.
    """
    selected = config.output.mode
    if selected is None and query:
        values = parse_qs(query.lstrip("?")).get("output")
        if values:
            selected = values[0].strip().lower()

    if not selected:
        return OutputMode.JSON

    try:
        return OutputMode(selected)
    except ValueError:
        logger.warning("Unknown output mode '%s', using json.", selected)
        return OutputMode.JSON
