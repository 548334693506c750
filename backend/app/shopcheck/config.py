"""
Scan Configuration

Pydantic models for everything the checks consume: browser viewport,
per-operation timeouts, navigation retries, error tolerances, named settle
windows and selector overrides.

Configuration files are JSON and are merged over the defaults one section
at a time. A handful of environment variables (loaded from backend/.env)
override the merged result.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigError

# Configure logging
logger = logging.getLogger(__name__)


DEFAULT_BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
]


class Viewport(BaseModel):
    width: int = Field(1920, gt=0)
    height: int = Field(1080, gt=0)


class BrowserConfig(BaseModel):
    headless: bool = True
    viewport: Viewport = Field(default_factory=Viewport)
    args: List[str] = Field(default_factory=lambda: list(DEFAULT_BROWSER_ARGS))


class TimeoutConfig(BaseModel):
    """Per-operation timeouts in milliseconds"""
    page_load_ms: int = Field(30000, ge=0)
    element_wait_ms: int = Field(10000, ge=0)
    navigation_ms: int = Field(30000, ge=0)


class RetryConfig(BaseModel):
    """Navigation retries only; checks are never re-run"""
    attempts: int = Field(3, ge=1)
    delay_ms: int = Field(2000, ge=0)


class ToleranceConfig(BaseModel):
    max_critical_errors: int = Field(0, ge=0)
    max_warnings: int = Field(5, ge=0)


class TimingConfig(BaseModel):
    """
    Settle windows in milliseconds.

    These are heuristics: a fixed delay is no guarantee the page is quiet,
    it only bounds how long delayed work is given to show up.
    """
    stabilization_delay_ms: int = Field(2000, ge=0)
    network_idle_timeout_ms: int = Field(10000, ge=0)
    image_settle_delay_ms: int = Field(2000, ge=0)
    lazy_load_step_delay_ms: int = Field(2000, ge=0)
    observation_window_ms: int = Field(4000, ge=0)
    slow_load_threshold_ms: int = Field(5000, ge=0)


class ImageConfig(BaseModel):
    min_alt_text_size: int = Field(50, ge=0)
    # "index" keeps the positional offset used for newly revealed images,
    # "src" tracks them by source URL instead
    lazy_image_identity: Literal["index", "src"] = "index"


class SignalConfig(BaseModel):
    noise_patterns: List[str] = Field(default_factory=lambda: [
        "analytics",
        "google-analytics",
        "facebook",
        "advertising",
        "adblock",
        "tracking",
        "pixel",
    ])
    critical_console_patterns: List[str] = Field(default_factory=lambda: [
        "uncaught",
        "syntax error",
        "syntaxerror",
        "reference error",
        "referenceerror",
        "type error",
        "typeerror",
    ])
    critical_resource_patterns: List[str] = Field(default_factory=lambda: [
        "/checkout",
        "/cart",
        "/api",
        ".css",
        "main.js",
        "app.js",
        "bundle.js",
    ])


class ScanConfig(BaseModel):
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    tolerance: ToleranceConfig = Field(default_factory=ToleranceConfig)
    timing: TimingConfig = Field(default_factory=TimingConfig)
    images: ImageConfig = Field(default_factory=ImageConfig)
    signals: SignalConfig = Field(default_factory=SignalConfig)
    # platform -> logical element -> ordered selectors
    selectors: Dict[str, Dict[str, List[str]]] = Field(default_factory=dict)


def merge_config(user_config: Optional[Dict[str, Any]] = None, base: Optional[ScanConfig] = None) -> ScanConfig:
    """
    Merge a user configuration dict over the defaults.

    Sections are merged key by key, so a file that only sets
    `tolerance.max_warnings` keeps every other default. Selector overrides
    replace single element lists and may introduce new platforms. When
    `base` is given the overrides land on it instead of the defaults.
    """
    user_config = user_config or {}
    if not isinstance(user_config, dict):
        raise ConfigError("Configuration root must be a JSON object")

    merged = (base or ScanConfig()).model_dump()
    for section, value in user_config.items():
        if section not in merged:
            logger.warning(f"Ignoring unknown configuration section: {section}")
            continue

        if section == "selectors":
            if not isinstance(value, dict):
                raise ConfigError("'selectors' must map platforms to element selector lists")
            for platform, elements in value.items():
                if not isinstance(elements, dict):
                    raise ConfigError(f"Selectors for platform '{platform}' must be an object")
                merged["selectors"].setdefault(platform.lower(), {}).update(elements)
        elif isinstance(merged[section], dict) and isinstance(value, dict):
            merged[section] = _deep_update(merged[section], value)
        else:
            merged[section] = value

    try:
        return ScanConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def _deep_update(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in updates.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = _deep_update(result[key], value)
        else:
            result[key] = value
    return result


def load_config(path: Optional[Union[str, Path]] = None, apply_env: bool = True) -> ScanConfig:
    """
    Load configuration from an optional JSON file plus environment overrides.

    Args:
        path: JSON configuration file; defaults only when None
        apply_env: Apply SHOPCHECK_* environment overrides

    Returns:
        Validated ScanConfig

    Raises:
        ConfigError: File unreadable, not JSON, or failing validation
    """
    user_config: Dict[str, Any] = {}
    if path:
        config_path = Path(path)
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                user_config = json.load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"Configuration file not found: {config_path}") from e
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Error loading config file {config_path}: {e}") from e
        logger.info(f"Loaded configuration from {config_path}")

    config = merge_config(user_config)
    if apply_env:
        config = apply_env_overrides(config)
    return config


def apply_env_overrides(config: ScanConfig, environ: Optional[Dict[str, str]] = None) -> ScanConfig:
    """Apply SHOPCHECK_HEADLESS / SHOPCHECK_MAX_CRITICAL / SHOPCHECK_MAX_WARNINGS"""
    env = os.environ if environ is None else environ
    updates: Dict[str, Any] = {}

    headless = env.get("SHOPCHECK_HEADLESS")
    if headless:
        updates["browser"] = {"headless": headless.strip().lower() in ("1", "true", "yes")}

    tolerance: Dict[str, Any] = {}
    for var, key in (("SHOPCHECK_MAX_CRITICAL", "max_critical_errors"),
                     ("SHOPCHECK_MAX_WARNINGS", "max_warnings")):
        raw = env.get(var)
        if raw:
            try:
                tolerance[key] = int(raw)
            except ValueError as e:
                raise ConfigError(f"{var} must be an integer, got {raw!r}") from e
    if tolerance:
        updates["tolerance"] = tolerance

    if not updates:
        return config

    data = config.model_dump()
    for section, values in updates.items():
        data[section] = _deep_update(data[section], values)
    try:
        return ScanConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid environment override: {e}") from e
