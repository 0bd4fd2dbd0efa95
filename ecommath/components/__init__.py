"""
Configuration components for ecommath.
"""

from ecommath.components.config import Config, ConfigManager, setup_logging
