"""
Configuration Module for the Invoice Extraction Engine.

Centralized configuration management backed by YAML. Every policy value the
engine uses (classifier thresholds, backend orders and timeouts, confidence
weights, routing cutoffs) is read from here with an in-code default, so a
partial settings file is always valid.

The settings file is looked up in this order:
    1. An explicit path given to ConfigurationManager / configure()
    2. The INVOICE_ENGINE_CONFIG environment variable
    3. config/settings.yaml next to this module
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional


ENV_CONFIG_PATH = "INVOICE_ENGINE_CONFIG"
DEFAULT_SETTINGS = Path(__file__).parent / "settings.yaml"
DEFAULT_PATTERNS = Path(__file__).parent / "patterns.yaml"


class ConfigurationManager:
    """
    Process-wide configuration for the invoice engine.

    Loads settings.yaml once and answers dot-notation lookups.

    Attributes:
        config_path (Path): Path to the configuration file.

    Example:
        >>> config = ConfigurationManager()
        >>> config.get("routing.auto_approve_threshold")
        0.9
        >>> config.get("coordinator.timeouts.ocr", 120)
        120
    """

    _instance: Optional['ConfigurationManager'] = None
    _config: Dict[str, Any] = {}

    def __new__(cls, config_path: Optional[str] = None) -> 'ConfigurationManager':
        """Singleton: the first construction decides which file is loaded."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_path: Optional path to configuration file.
        """
        if self._initialized:
            return

        if config_path is None:
            config_path = os.environ.get(ENV_CONFIG_PATH) or DEFAULT_SETTINGS
        self.config_path = Path(config_path)

        self._load_config()
        self._initialized = True

    def _load_config(self) -> None:
        """
        Load configuration from the YAML file.

        Raises:
            FileNotFoundError: If configuration file doesn't exist.
            yaml.YAMLError: If configuration file is invalid.
        """
        if not self.config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {self.config_path}"
            )

        with open(self.config_path, 'r', encoding='utf-8') as f:
            self._config = yaml.safe_load(f) or {}

        self._resolve_paths()

    def _resolve_paths(self) -> None:
        """Resolve relative entries under ``paths`` against the project root."""
        project_root = Path(__file__).parent.parent

        for key, value in (self._config.get('paths') or {}).items():
            if value and not Path(value).is_absolute():
                self._config['paths'][key] = str(project_root / value)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., "routing.review_threshold").
            default: Default value if key doesn't exist.

        Returns:
            Configuration value or default.
        """
        value = self._config

        try:
            for k in key.split('.'):
                value = value[k]
        except (KeyError, TypeError):
            return default

        return default if value is None else value

    def get_all(self) -> Dict[str, Any]:
        """Get a shallow copy of the complete configuration dictionary."""
        return self._config.copy()

    def reload(self) -> None:
        """Reload configuration from the same file."""
        self._load_config()

    @classmethod
    def reset(cls) -> None:
        """Forget the singleton so the next access loads afresh."""
        cls._instance = None


def configure(config_path: Optional[str] = None) -> ConfigurationManager:
    """
    Replace the active configuration with the given settings file.

    Args:
        config_path: Path to a settings YAML file (None for the default).

    Returns:
        The new ConfigurationManager.
    """
    ConfigurationManager.reset()
    return ConfigurationManager(config_path)


def get_config(key: str, default: Any = None) -> Any:
    """
    Convenience function to get configuration values.

    Args:
        key: Configuration key in dot notation.
        default: Default value if key doesn't exist.

    Returns:
        Configuration value or default.
    """
    return ConfigurationManager().get(key, default)


__all__ = [
    'ConfigurationManager',
    'configure',
    'get_config',
    'DEFAULT_SETTINGS',
    'DEFAULT_PATTERNS',
]
