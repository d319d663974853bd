"""YAML configuration loader for beatcut."""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from .settings import (
    AnalysisConfig,
    BeatDetectionSettings,
    LevelScoringSettings,
    RhythmMode,
    SilenceSensitivity,
    SpeechSensitivity,
    PRESETS,
)

logger = logging.getLogger(__name__)


class BeatcutConfig:
    """beatcut configuration loader."""
    
    def __init__(self, config_path: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        """Initialize configuration loader.
        
        Args:
            config_path: Path to YAML config file
            data: Already-parsed configuration, used instead of a file when
                  config_path is None
        """
        if config_path is None:
            self.config_file = None
            self.config = data if data is not None else {}
            return

        self.config_file = Path(config_path)
        
        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")
        
        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()
    
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
        
        self._resolve_paths(config)
        
        logger.info("Configuration loaded successfully")
        return config
    
    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent
        
        for section, key in (('logging', 'file_path'), ('output', 'report_path')):
            if isinstance(config.get(section), dict) and config[section].get(key):
                path = config[section][key]
                if not os.path.isabs(path):
                    config[section][key] = str(config_dir / path)
    
    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'analysis.rhythm_mode').
        
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
        """Set configuration value using dot notation.
        
        Args:
            key_path: Dot-separated path to config value (e.g., 'analysis.preset')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config
        
        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]
        
        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")
    
    def get_analysis_config(self) -> AnalysisConfig:
        """Build the validated analysis settings from the 'analysis' section."""
        return AnalysisConfig.from_dict(self.get('analysis', {}) or {})


__all__ = [
    "BeatcutConfig",
    "AnalysisConfig",
    "BeatDetectionSettings",
    "LevelScoringSettings",
    "RhythmMode",
    "SilenceSensitivity",
    "SpeechSensitivity",
    "PRESETS",
]
