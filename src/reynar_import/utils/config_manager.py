"""Configuration management for statement imports."""

import dataclasses
import json
import logging
import os
from typing import Dict, Any, Optional

import yaml

from ..models.core import ImportConfig
from .importer import StatementImportError


logger = logging.getLogger(__name__)


PERCENT_KEYS = (
    'strong_similarity_threshold',
    'weak_similarity_threshold',
    'weak_match_confidence',
    'amount_match_confidence',
    'description_match_confidence',
    'contested_confidence',
)

STRING_KEYS = ('default_currency', 'default_category', 'history_path', 'ledger_path')


class ConfigManager:
    """Loads and validates ImportConfig from JSON or YAML files"""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager

        Args:
            config_path: Path to configuration file. If None, searches for default locations.
        """
        self.config_path = config_path
        self._config_cache: Optional[ImportConfig] = None

    def load_config(self, force_reload: bool = False) -> ImportConfig:
        """Load import configuration from file or return defaults

        Args:
            force_reload: Force reload from file even if cached

        Returns:
            ImportConfig instance with loaded or default configuration

        Raises:
            StatementImportError: If an explicitly given config file does not exist
        """
        if self._config_cache is not None and not force_reload:
            return self._config_cache

        config_data = self._load_config_file()
        known = {f.name for f in dataclasses.fields(ImportConfig)}

        for key in config_data:
            if key not in known:
                logger.warning(f"Unknown configuration key ignored: {key}")

        self._config_cache = ImportConfig(**{k: v for k, v in config_data.items() if k in known})
        logger.info(f"Configuration loaded from {self.config_path or 'defaults'}")
        return self._config_cache

    def _load_config_file(self) -> Dict[str, Any]:
        """Load configuration from file

        Returns:
            Dictionary with configuration data or empty dict if no usable file found
        """
        config_file = self._find_config_file()

        if not config_file:
            logger.info("No configuration file found, using defaults")
            return {}

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                if config_file.endswith('.json'):
                    data = json.load(f)
                elif config_file.endswith(('.yml', '.yaml')):
                    data = yaml.safe_load(f)
                else:
                    logger.warning(f"Unsupported config file format: {config_file}")
                    return {}

            if data is None:
                return {}
            self._validate_config_data(data)
            logger.info(f"Configuration loaded from {config_file}")
            return data

        except (OSError, json.JSONDecodeError, yaml.YAMLError, ValueError) as e:
            logger.warning(f"Error reading configuration file {config_file}: {e}. Using defaults.")
            return {}

    def _find_config_file(self) -> Optional[str]:
        """Find configuration file in standard locations

        Returns:
            Path to configuration file or None if not found
        """
        if self.config_path:
            if not os.path.exists(self.config_path):
                raise StatementImportError("Configuration file not found", file_path=self.config_path)
            return self.config_path

        search_paths = [
            'reynar_import.json',
            'reynar_import.yml',
            'reynar_import.yaml',
            'config/reynar_import.json',
            'config/reynar_import.yml',
            'config/reynar_import.yaml',
            os.path.expanduser('~/.reynar_import/config.json'),
            os.path.expanduser('~/.reynar_import/config.yml'),
            os.path.expanduser('~/.reynar_import/config.yaml'),
        ]

        for path in search_paths:
            if os.path.exists(path):
                return path

        return None

    def _validate_config_data(self, data: Dict[str, Any]) -> None:
        """Validate configuration data structure

        Args:
            data: Configuration data to validate

        Raises:
            ValueError: If configuration data is invalid
        """
        if not isinstance(data, dict):
            raise ValueError("Configuration must be a dictionary")

        for key in STRING_KEYS:
            if key in data:
                if not isinstance(data[key], str) or not data[key].strip():
                    raise ValueError(f"{key} must be a non-empty string")

        for key in PERCENT_KEYS:
            if key in data:
                value = data[key]
                if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= 100:
                    raise ValueError(f"{key} must be an integer between 0 and 100")

        for key in ('date_tolerance_days', 'ai_text_limit'):
            if key in data:
                value = data[key]
                if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                    raise ValueError(f"{key} must be a non-negative integer")

        if data.get('weak_similarity_threshold', 60) > data.get('strong_similarity_threshold', 90):
            raise ValueError("weak_similarity_threshold cannot exceed strong_similarity_threshold")

        if 'date_formats' in data:
            if not isinstance(data['date_formats'], list):
                raise ValueError("date_formats must be a list")
            for fmt in data['date_formats']:
                if not isinstance(fmt, str):
                    raise ValueError("All date formats must be strings")

        if 'column_mappings' in data:
            mappings = data['column_mappings']
            if not isinstance(mappings, dict):
                raise ValueError("column_mappings must be a dictionary")
            for field_name, names in mappings.items():
                if isinstance(names, str):
                    continue
                if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
                    raise ValueError(f"column_mappings.{field_name} must be a list of header names")

    def save_config_template(self, output_path: str) -> None:
        """Generate and save a configuration file template

        Args:
            output_path: Path where to save the template (.json, .yml or .yaml)
        """
        template = dataclasses.asdict(ImportConfig())
        template['column_mappings'] = {
            'date': ['Posted Date', 'Data Lançamento'],
            'description': ['Payee', 'Histórico'],
            'amount': ['Amount', 'Valor (R$)'],
        }

        output_dir = os.path.dirname(output_path)
        if output_dir:
            os.makedirs(output_dir, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            if output_path.endswith(('.yml', '.yaml')):
                yaml.dump(template, f, default_flow_style=False, indent=2, allow_unicode=True)
            else:
                json.dump(template, f, indent=2, ensure_ascii=False)

        logger.info(f"Configuration template saved to {output_path}")

    def update_config(self, updates: Dict[str, Any]) -> None:
        """Update configuration with new values

        Args:
            updates: Dictionary of configuration updates
        """
        if self._config_cache is None:
            self.load_config()

        for key, value in updates.items():
            if hasattr(self._config_cache, key):
                setattr(self._config_cache, key, value)
                logger.debug(f"Updated configuration: {key} = {value}")
            else:
                logger.warning(f"Unknown configuration key: {key}")

    def reset_config(self) -> None:
        """Reset configuration cache, forcing reload on next access"""
        self._config_cache = None
        logger.debug("Configuration cache reset")
