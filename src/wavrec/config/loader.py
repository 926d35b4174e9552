"""YAML configuration loader with inheritance support.

Supports:
- Loading YAML (or plain JSON) config files
- Config inheritance via 'extends' key
- Deep merging of nested config
- Falling back to the bundled defaults when no external file is usable
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from . import (
    DEFAULT_BIT_DEPTH,
    DEFAULT_BUFFER_MULTIPLIER,
    DEFAULT_CHANNEL_COUNT,
    DEFAULT_MIN_BUFFER_SIZE,
    DEFAULT_SAMPLE_RATE,
    AudioConfig,
    AudioSource,
    LoggingConfig,
    RecorderSettings,
    WavrecConfig,
)

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "WAVREC_CONFIG"
BUNDLED_CONFIG = Path(__file__).parent / "defaults.yaml"

# Accepted spellings for each AudioConfig field (first match wins)
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "audio_source": ("audioSource", "audio_source"),
    "sample_rate": ("sampleRate", "sample_rate"),
    "channel_count": ("channelCount", "channel_count", "channels"),
    "bit_depth": ("audioFormat", "bitDepth", "bit_depth", "bits_per_sample"),
    "buffer_multiplier": ("bufferMultiplier", "buffer_multiplier"),
    "output_path": ("audioFilePath", "output_path", "outputPath"),
    "min_buffer_size": ("minBufferSize", "min_buffer_size"),
    "description": ("description",),
    "input_device": ("inputDevice", "input_device"),
}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Values from override take precedence. Nested dicts are merged recursively.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_yaml_with_inheritance(path: Path) -> dict[str, Any]:
    """Load YAML file with inheritance support.

    If the file contains an 'extends' key, the base config is loaded first
    and merged with the current config.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ValueError(f"Config root must be a mapping: {path}")

    if "extends" in config:
        base_name = config.pop("extends")
        base_path = path.parent / base_name
        base_config = load_yaml_with_inheritance(base_path)
        config = deep_merge(base_config, config)

    return config


def _pick(data: dict[str, Any], field_name: str, default: Any) -> Any:
    for key in _FIELD_ALIASES[field_name]:
        if key in data and data[key] is not None:
            return data[key]
    return default


def parse_audio_config(data: dict[str, Any]) -> AudioConfig:
    """Convert one raw configuration record into an AudioConfig.

    Range checks are left to the negotiator; this only coerces types.

    Raises:
        ValueError: If a numeric field is not an integer
    """
    try:
        return AudioConfig(
            audio_source=AudioSource.parse(_pick(data, "audio_source", "MIC")),
            sample_rate=int(_pick(data, "sample_rate", DEFAULT_SAMPLE_RATE)),
            channel_count=int(_pick(data, "channel_count", DEFAULT_CHANNEL_COUNT)),
            bit_depth=int(_pick(data, "bit_depth", DEFAULT_BIT_DEPTH)),
            buffer_multiplier=int(_pick(data, "buffer_multiplier", DEFAULT_BUFFER_MULTIPLIER)),
            output_path=str(_pick(data, "output_path", "")),
            min_buffer_size=int(_pick(data, "min_buffer_size", DEFAULT_MIN_BUFFER_SIZE)),
            description=str(_pick(data, "description", "Custom configuration")),
            input_device=str(_pick(data, "input_device", "default")),
        )
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid audio configuration {data!r}: {e}") from e


def dict_to_config(data: dict[str, Any]) -> WavrecConfig:
    """Convert raw dict to typed WavrecConfig dataclass."""

    # YAML yields None for empty sections
    def safe_get(key: str) -> dict[str, Any]:
        value = data.get(key, {})
        return value if value is not None else {}

    raw_configs = data.get("configs") or []
    if not isinstance(raw_configs, list):
        raise ValueError("'configs' must be a list")

    return WavrecConfig(
        recorder=RecorderSettings(**safe_get("recorder")),
        logging=LoggingConfig(**safe_get("logging")),
        configs=[parse_audio_config(item) for item in raw_configs],
    )


class YAMLConfigLoader:
    """YAML configuration loader implementation."""

    def __init__(self, bundled_path: Path | None = None) -> None:
        """Initialize loader.

        Args:
            bundled_path: Fallback config shipped with the package.
                          Defaults to wavrec/config/defaults.yaml.
        """
        self._bundled_path = bundled_path or BUNDLED_CONFIG

    def load(self, path: Path) -> WavrecConfig:
        """Load configuration from file path.

        Args:
            path: Path to YAML or JSON config file

        Returns:
            Parsed WavrecConfig

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file content is malformed
        """
        raw_config = load_yaml_with_inheritance(path)
        config = dict_to_config(raw_config)
        logger.info(f"Loaded {len(config.configs)} configurations from {path}")
        return config

    def load_bundled(self) -> WavrecConfig:
        """Load the configuration bundled with the package."""
        return self.load(self._bundled_path)

    def load_with_fallback(self, path: Path) -> WavrecConfig:
        """Load an external file, using the bundled defaults if it is unusable.

        A missing file, a malformed file, or one with no configurations all
        fall back to the bundled defaults.
        """
        if path.exists():
            try:
                config = self.load(path)
                if config.configs:
                    return config
                logger.warning(f"No configurations in {path}, using bundled defaults")
            except (ValueError, TypeError, yaml.YAMLError) as e:
                logger.error(f"Failed to read external configuration file {path}: {e}")
        else:
            logger.debug(f"External config {path} not found, using bundled defaults")
        return self.load_bundled()


def load_config(path: str | Path | None = None) -> WavrecConfig:
    """Load wavrec configuration.

    Args:
        path: Direct path to config file (takes precedence, must exist)

    Returns:
        Parsed WavrecConfig

    Examples:
        >>> config = load_config()
        >>> config = load_config(path="/path/to/configs.yaml")
    """
    loader = YAMLConfigLoader()

    if path is not None:
        return loader.load(Path(path))

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return loader.load_with_fallback(Path(env_path).expanduser())

    return loader.load_bundled()


def load_audio_configs(path: str | Path | None = None) -> list[AudioConfig]:
    """Convenience wrapper returning only the configuration records."""
    return load_config(path).configs


__all__ = [
    "YAMLConfigLoader",
    "deep_merge",
    "dict_to_config",
    "load_audio_configs",
    "load_config",
    "load_yaml_with_inheritance",
    "parse_audio_config",
]
