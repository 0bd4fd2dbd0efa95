"""
Configuration management for ecommath.

This module provides functionality for managing configuration: built-in
defaults, overrides passed in code, and overrides loaded from YAML or JSON
files. There is no environment-variable layer: every tunable reaches a
computation through a Config object.
"""

import json
import logging
import threading
from typing import Dict, Optional, Any
from copy import deepcopy
import yaml

# Set up logging
logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = 'INFO') -> None:
    """
    Set up logging.

    Args:
        level: Logging level name
    """
    level_name = level.upper()
    if level_name == 'WARN':
        level_name = 'WARNING'
    logging.basicConfig(
        level=getattr(logging, level_name),
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler()
        ]
    )


def deep_update(d: Dict[str, Any], u: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge u into d.

    Args:
        d: Dictionary to update in place
        u: Dictionary of updates

    Returns:
        The updated dictionary
    """
    for k, v in u.items():
        if isinstance(v, dict) and k in d and isinstance(d[k], dict):
            d[k] = deep_update(d[k], v)
        else:
            d[k] = v
    return d


class Config:
    """
    Configuration for ecommath analysis runs.
    """

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration.

        Args:
            overrides: Optional configuration overrides
        """
        self._lock = threading.RLock()
        self._config = {}
        self._initialized = False

        self.load_config(overrides)

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> None:
        """
        Load configuration from defaults plus overrides.

        Args:
            overrides: Optional configuration overrides
        """
        with self._lock:
            config = self._get_defaults()

            if overrides:
                config = self._apply_overrides(config, overrides)

            self._validate(config)

            self._config = config
            self._initialized = True

            logger.debug("Configuration loaded")

    def _get_defaults(self) -> Dict[str, Any]:
        """
        Get default configuration values.

        Returns:
            Default configuration
        """
        return {
            # Distance matrices
            'distance': {
                'mahalanobis-regularization': 0.0,
                'max-condition': 1e12,
                'default-metrics': [
                    'euclidean',
                    'manhattan',
                    'canberra',
                    'mahalanobis',
                    'jaccard',
                    'sokal-michener'
                ]
            },

            # PCA
            'pca': {
                'variance-threshold': 95.0,  # percent
                'solver': 'eigh',            # eigh or power
                'psd-tolerance': 1e-8,
                'power-iters': 1000
            },

            # Intercorrelation diagnostics
            'diagnostics': {
                'singular-tolerance': 1e-10
            },

            # Multidimensional scaling
            'mds': {
                'n-components': 2,
                'method': 'classical',       # classical or smacof
                'n-init': 4,
                'max-iter': 300
            },

            # Run context
            'run': {
                'seed': 42
            },

            # Logging
            'logging': {
                'level': 'warning'
            }
        }

    def _apply_overrides(self, config: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply configuration overrides.

        Args:
            config: Current configuration
            overrides: Configuration overrides

        Returns:
            Updated configuration
        """
        config = deepcopy(config)
        return deep_update(config, deepcopy(overrides))

    def _validate(self, config: Dict[str, Any]) -> None:
        """
        Reject values no computation could use.

        Args:
            config: Candidate configuration
        """
        threshold = config['pca']['variance-threshold']
        if not 0 < float(threshold) <= 100:
            raise ValueError(f"pca.variance-threshold must be in (0, 100], got {threshold}")

        if config['pca']['solver'] not in ('eigh', 'power'):
            raise ValueError(f"Unknown PCA solver: {config['pca']['solver']}")

        if config['mds']['method'] not in ('classical', 'smacof'):
            raise ValueError(f"Unknown MDS method: {config['mds']['method']}")

        if float(config['distance']['mahalanobis-regularization']) < 0:
            raise ValueError("distance.mahalanobis-regularization must be non-negative")

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            path: Configuration path (dot-separated)
            default: Default value if not found

        Returns:
            Configuration value, or default if not found
        """
        if not self._initialized:
            self.load_config()

        value = self._config
        for component in path.split('.'):
            if isinstance(value, dict) and component in value:
                value = value[component]
            else:
                return default

        return value

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            path: Configuration path (dot-separated)
            value: Configuration value

        Raises:
            ValueError: if the updated configuration is invalid
        """
        with self._lock:
            if not self._initialized:
                self.load_config()

            components = path.split('.')
            candidate = deepcopy(self._config)
            config = candidate
            for component in components[:-1]:
                if component not in config:
                    config[component] = {}
                config = config[component]

            config[components[-1]] = value
            self._validate(candidate)
            self._config = candidate

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert configuration to a dictionary.

        Returns:
            Configuration dictionary
        """
        if not self._initialized:
            self.load_config()

        return deepcopy(self._config)

    def configure_logging(self) -> None:
        """
        Configure the root logger from the logging.level setting.
        """
        setup_logging(self.get('logging.level', 'warning'))

    def save_to_file(self, filepath: str) -> None:
        """
        Save configuration to a file.

        Args:
            filepath: Path to save configuration
        """
        if not self._initialized:
            self.load_config()

        if filepath.endswith('.json'):
            with open(filepath, 'w') as f:
                json.dump(self._config, f, indent=2)
        elif filepath.endswith('.yaml') or filepath.endswith('.yml'):
            with open(filepath, 'w') as f:
                yaml.dump(self._config, f, default_flow_style=False)
        else:
            raise ValueError(f"Unsupported file format: {filepath}")

    def load_from_file(self, filepath: str) -> None:
        """
        Load configuration overrides from a file.

        Args:
            filepath: Path to load configuration from
        """
        if filepath.endswith('.json'):
            with open(filepath, 'r') as f:
                overrides = json.load(f)
        elif filepath.endswith('.yaml') or filepath.endswith('.yml'):
            with open(filepath, 'r') as f:
                overrides = yaml.safe_load(f)
        else:
            raise ValueError(f"Unsupported file format: {filepath}")

        self.load_config(overrides or {})

    @classmethod
    def from_file(cls, filepath: str) -> 'Config':
        """
        Create a configuration from a YAML or JSON file.
        """
        config = cls()
        config.load_from_file(filepath)
        return config


class ConfigManager:
    """
    Singleton manager for the process-wide default configuration.
    """

    _instance = None
    _lock = threading.RLock()

    @classmethod
    def get_config(cls, overrides: Optional[Dict[str, Any]] = None) -> Config:
        """
        Get the configuration instance.

        Args:
            overrides: Optional configuration overrides

        Returns:
            Config instance
        """
        with cls._lock:
            if cls._instance is None:
                cls._instance = Config(overrides)
            elif overrides:
                cls._instance.load_config(overrides)

            return cls._instance

    @classmethod
    def reset(cls) -> None:
        """
        Drop the shared instance so the next call rebuilds it from defaults.
        """
        with cls._lock:
            cls._instance = None
