"""Simple YAML configuration loader for voiceintake."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


DEFAULTS: Dict[str, Any] = {
    "interview": {
        "base_url": "http://localhost:3000",
        "timeout_seconds": 60,
        "language": "en",
        "idle_pause_seconds": 600,
        "countdown_seconds": 60,
        "countdown_tick_seconds": 1.0,
        "summary_max_chars": 1500,
        "mock": False,
    },
    "capture": {
        "backend": "continuous",
        "max_restarts": 3,
        "stop_timeout_seconds": 2.0,
        "sample_rate": 48000,
        "channels": 1,
        "chunk_size": 1024,
    },
    "cleanup": {
        "enabled": True,
        "engine": "http",
        "endpoint": "http://localhost:3000/api/speech/clean",
        "model": "gpt-4o-mini",
        "timeout_seconds": 10,
    },
    "transcription": {
        "engine": "http",
        "endpoint": "http://localhost:3000/api/speech/stt",
        "timeout_seconds": 30,
    },
    "storage": {
        "data_directory": "data",
    },
    "logging": {
        "level": "INFO",
        "file_path": "data/logs/voiceintake.log",
        "console_output": True,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class IntakeConfig:
    """voiceintake configuration loader."""

    def __init__(self, config_path: str):
        """Initialize configuration loader.

        Args:
            config_path: Path to the YAML config file (usually voiceintake.yaml).
        """
        self.config_file = Path(config_path)

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    @classmethod
    def from_dict(cls, values: Optional[Dict[str, Any]] = None, base_dir: str = ".") -> "IntakeConfig":
        """Build a configuration without a file, layered over the defaults."""
        instance = cls.__new__(cls)
        instance.config_file = Path(base_dir) / "voiceintake.yaml"
        instance.config = _merge(DEFAULTS, values or {})
        instance._resolve_paths(instance.config)
        return instance

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not config:
            raise ValueError("Configuration file is empty")
        if not isinstance(config, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        config = _merge(DEFAULTS, config)
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        creds_path = config.get('transcription', {}).get('credentials_path')
        if creds_path and not os.path.isabs(creds_path):
            config['transcription']['credentials_path'] = str(config_dir / creds_path)

        data_dir = config.get('storage', {}).get('data_directory')
        if data_dir and not os.path.isabs(data_dir):
            config['storage']['data_directory'] = str(config_dir / data_dir)

        log_path = config.get('logging', {}).get('file_path')
        if log_path and not os.path.isabs(log_path):
            config['logging']['file_path'] = str(config_dir / log_path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'capture.backend').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation."""
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_openai_api_key(self) -> str:
        """Get the OpenAI key for the ChatGPT cleanup engine - raises if not configured."""
        api_key = self.get('cleanup.api_key') or os.environ.get('OPENAI_API_KEY')
        if not api_key:
            raise ValueError("cleanup.api_key is not configured and OPENAI_API_KEY is not set")
        return api_key

    def get_google_credentials_path(self) -> str:
        """Get Google credentials path - raises if not found."""
        creds_path = self.get('transcription.credentials_path')
        if not creds_path:
            raise ValueError("Google credentials path not configured in voiceintake.yaml")

        creds_file = Path(creds_path)
        if not creds_file.exists():
            raise FileNotFoundError(f"Google credentials file not found: {creds_path}")

        return str(creds_file.absolute())

    def get_data_directory(self) -> str:
        """Get data directory path."""
        data_dir = self.get('storage.data_directory', 'data')
        return str(Path(data_dir).absolute())
