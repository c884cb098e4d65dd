"""
Config loader for askgpt.

Reads config.yaml, resolves ${ENV_VAR} references, and folds the result into
a Settings value object that callers pass around explicitly. A missing file
or missing keys fall back to the documented defaults; nothing here raises on
bad configuration.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from askgpt.conversation import DEFAULT_SYSTEM_PROMPT

load_dotenv()

logger = logging.getLogger(__name__)

_CONFIG_PATH = Path(os.environ.get("ASKGPT_CONFIG", "config.yaml"))

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_BASE_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1024
DEFAULT_TIMEOUT = 60
DEFAULT_MAX_HISTORY_MESSAGES = 20

FEATURE_NAMES = ("book_analysis", "characters_plot", "discussion", "recommendations")


def _resolve_env_vars(value: str) -> str:
    """Replace ${ENV_VAR} patterns with actual environment variable values."""
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, "")
    return re.sub(r"\$\{(\w+)\}", replacer, value)


def _walk_and_resolve(obj):
    """Recursively resolve env vars in all string values."""
    if isinstance(obj, dict):
        return {k: _walk_and_resolve(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_walk_and_resolve(v) for v in obj]
    elif isinstance(obj, str):
        return _resolve_env_vars(obj)
    return obj


def load_config(path: Path | str | None = None) -> dict:
    """Load raw config from YAML. Missing or unreadable files give {}."""
    config_path = Path(path) if path else _CONFIG_PATH
    if not config_path.exists():
        logger.info("No config at %s, using defaults", config_path)
        return {}

    try:
        with open(config_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Could not read config %s: %s", config_path, e)
        return {}

    if not isinstance(raw, dict):
        logger.warning("Config %s is not a mapping, ignoring", config_path)
        return {}
    return _walk_and_resolve(raw)


def _as_float(value: Any, default: float | None) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def validate_temperature(value: Any) -> float:
    """Temperatures outside 0.0-2.0 (or unparseable) fall back to 0.7."""
    temp = _as_float(value, None)
    if temp is None or not 0 <= temp <= 2:
        logger.warning("Invalid temperature %r, using %s", value, DEFAULT_TEMPERATURE)
        return DEFAULT_TEMPERATURE
    return temp


def validate_max_tokens(value: Any) -> int:
    """Non-positive (or unparseable) max_tokens fall back to 1024."""
    tokens = _as_int(value, 0)
    if tokens <= 0:
        logger.warning("Invalid max_tokens %r, using %d", value, DEFAULT_MAX_TOKENS)
        return DEFAULT_MAX_TOKENS
    return tokens


@dataclass
class Settings:
    """Everything the core needs from configuration."""
    api_key: str = ""
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    temperature: float | None = None        # None → model family default
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout: float = DEFAULT_TIMEOUT
    max_history_messages: int = DEFAULT_MAX_HISTORY_MESSAGES
    additional_parameters: dict[str, Any] = field(default_factory=dict)
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    custom_prompts: dict[str, str] = field(default_factory=dict)
    advanced_features: dict[str, bool] = field(default_factory=dict)
    data_dir: Path = Path("./data")
    log_level: str = "INFO"
    log_file: str | None = None

    @property
    def history_path(self) -> Path:
        return self.data_dir / "history.json"

    @property
    def error_log_path(self) -> Path:
        return self.data_dir / "errors.log"

    def is_feature_enabled(self, name: str, default: bool = True) -> bool:
        value = self.advanced_features.get(name)
        if value is None:
            return default
        return bool(value)

    def with_overrides(
        self,
        model: str | None = None,
        temperature: Any = None,
        max_tokens: Any = None,
        system_prompt: str | None = None,
    ) -> "Settings":
        """Copy with validated per-session overrides applied."""
        changes: dict[str, Any] = {}
        if model:
            changes["model"] = model
        if temperature is not None:
            changes["temperature"] = validate_temperature(temperature)
        if max_tokens is not None:
            changes["max_tokens"] = validate_max_tokens(max_tokens)
        if system_prompt:
            changes["system_prompt"] = system_prompt
        return dataclasses.replace(self, **changes)


def settings_from_dict(cfg: dict) -> Settings:
    """Build Settings from a raw config mapping, defaulting anything missing."""
    features = cfg.get("features") or {}
    prompts = dict(features.get("custom_prompts") or {})
    system_prompt = prompts.pop("system", None) or DEFAULT_SYSTEM_PROMPT
    custom_prompts = {
        name: text for name, text in prompts.items()
        if isinstance(text, str) and text.strip()
    }

    temperature = cfg.get("temperature")
    if temperature is not None:
        temperature = validate_temperature(temperature)

    log_cfg = cfg.get("logging") or {}

    return Settings(
        api_key=cfg.get("api_key") or os.environ.get("OPENAI_API_KEY", ""),
        model=cfg.get("model") or DEFAULT_MODEL,
        base_url=cfg.get("base_url") or DEFAULT_BASE_URL,
        temperature=temperature,
        max_tokens=validate_max_tokens(cfg.get("max_tokens", DEFAULT_MAX_TOKENS)),
        timeout=_as_float(cfg.get("timeout"), DEFAULT_TIMEOUT),
        max_history_messages=max(2, _as_int(cfg.get("max_history_messages"), DEFAULT_MAX_HISTORY_MESSAGES)),
        additional_parameters=dict(cfg.get("additional_parameters") or {}),
        system_prompt=system_prompt,
        custom_prompts=custom_prompts,
        advanced_features=dict(features.get("advanced_features") or {}),
        data_dir=Path(cfg.get("data_dir") or "./data"),
        log_level=str(log_cfg.get("level", "INFO")),
        log_file=log_cfg.get("file"),
    )


def load_settings(path: Path | str | None = None) -> Settings:
    """Load config.yaml (or `path`) into Settings."""
    return settings_from_dict(load_config(path))
