# ========================
# src/utils/config.py
# ========================

"""
Configuration Management

Centralized configuration for the ingestion service with environment support.
"""

import os
import json
from pathlib import Path
from typing import Dict, Any, List, Optional

DEFAULT_RECORD_FIELDS = 'id,firstname,lastname,email,email2,profession'


def _split_fields(value: str) -> List[str]:
    return [field.strip() for field in value.split(',') if field.strip()]


def _optional_float(value: str) -> Optional[float]:
    if value.strip().lower() in ('', 'none', 'off'):
        return None
    return float(value)


class Config:
    """
    Configuration class for the ingestion service.
    Supports environment variables and default values.
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration.

        Args:
            config_dict (dict): Optional configuration overrides
        """
        # Ingestion
        self.BATCH_SIZE = int(os.getenv('INGEST_BATCH_SIZE', '1000'))
        self.MAX_CONCURRENT_WRITES = int(os.getenv('INGEST_MAX_CONCURRENT_WRITES', '5'))
        self.DRAIN_TIMEOUT = _optional_float(os.getenv('INGEST_DRAIN_TIMEOUT', '300'))
        self.RECORD_FIELDS = _split_fields(os.getenv('INGEST_RECORD_FIELDS', DEFAULT_RECORD_FIELDS))
        self.ENCODING = os.getenv('INGEST_ENCODING', 'utf-8-sig')
        self.DELIMITER = os.getenv('INGEST_DELIMITER', ',')

        # Storage and uploads
        self.DB_PATH = os.getenv('DB_PATH', 'data/records.db')
        self.UPLOAD_DIR = os.getenv('UPLOAD_DIR', 'data/uploads')
        self.RECENT_RECORDS_LIMIT = int(os.getenv('RECENT_RECORDS_LIMIT', '10'))

        # Server
        self.API_PORT = int(os.getenv('API_PORT', '8000'))

        # Sample data
        self.DEFAULT_SAMPLE_ROWS = int(os.getenv('SAMPLE_ROWS', '10000'))
        self.DEFAULT_INPUT_FILE = os.getenv('INGEST_INPUT_FILE', 'data/raw/people.csv')

        # Logging Configuration
        self.LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

        # Override with provided config
        if config_dict:
            self._update_from_dict(config_dict)

    def _update_from_dict(self, config_dict: Dict[str, Any]) -> None:
        """Update configuration from dictionary."""
        for key, value in config_dict.items():
            if key.upper() == 'RECORD_FIELDS' and isinstance(value, str):
                value = _split_fields(value)
            if hasattr(self, key.upper()):
                setattr(self, key.upper(), value)

    def get_data_paths(self) -> Dict[str, Path]:
        """Get all configured data paths as Path objects."""
        return {
            'db_file': Path(self.DB_PATH),
            'input_file': Path(self.DEFAULT_INPUT_FILE),
            'upload_dir': Path(self.UPLOAD_DIR),
            'logs_dir': Path('logs')
        }

    def ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        for path_name, path in self.get_data_paths().items():
            if path_name.endswith('_dir'):
                path.mkdir(parents=True, exist_ok=True)
            else:
                path.parent.mkdir(parents=True, exist_ok=True)

    def validate_config(self) -> Dict[str, bool]:
        """
        Validate configuration values.

        Returns:
            dict: Validation results for each setting
        """
        validations = {}

        validations['batch_size'] = self.BATCH_SIZE > 0
        validations['max_concurrent_writes'] = self.MAX_CONCURRENT_WRITES > 0
        validations['drain_timeout'] = self.DRAIN_TIMEOUT is None or self.DRAIN_TIMEOUT > 0
        validations['delimiter'] = len(self.DELIMITER) == 1
        validations['recent_records_limit'] = self.RECENT_RECORDS_LIMIT > 0
        validations['api_port'] = 1000 <= self.API_PORT <= 65535

        valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        validations['log_level'] = self.LOG_LEVEL.upper() in valid_log_levels

        return validations

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            attr: getattr(self, attr)
            for attr in dir(self)
            if not attr.startswith('_') and not callable(getattr(self, attr))
        }

    def save_to_file(self, file_path: str) -> None:
        """Save configuration to JSON file."""
        with open(file_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2, default=str)

    @classmethod
    def load_from_file(cls, file_path: str) -> 'Config':
        """Load configuration from JSON file."""
        with open(file_path, 'r') as f:
            config_dict = json.load(f)
        return cls(config_dict)

    def __str__(self) -> str:
        """String representation of configuration."""
        lines = ["Configuration Settings:"]
        for key, value in sorted(self.to_dict().items()):
            lines.append(f"  {key}: {value}")
        return "\n".join(lines)
