# ========================
# src/ev_adoption/utils/config.py
# ========================

"""
Configuration Management

Centralized configuration for the EV adoption pipeline with environment support.
"""

import os
import json
from pathlib import Path
from typing import Dict, Any, List, Optional


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(',') if item.strip()]


def _env_optional_int(name: str) -> Optional[int]:
    value = os.getenv(name, '').strip()
    return int(value) if value else None


class Config:
    """
    Configuration class for the pipeline.
    Supports environment variables and default values.
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration.

        Args:
            config_dict (dict): Optional configuration overrides
        """
        # Data Processing Configuration
        self.DEFAULT_CHUNK_SIZE = int(os.getenv('PIPELINE_CHUNK_SIZE', '1000'))

        # File Paths
        self.YEARLY_FILE = os.getenv('EV_YEARLY_FILE', 'data/raw/nmvr_yearly.csv')
        self.QUARTERLY_FILE = os.getenv('EV_QUARTERLY_FILE', 'data/raw/nmvr_quarterly.csv')
        self.GLOBAL_FILE = os.getenv('EV_GLOBAL_FILE', 'data/raw/global_ev_sales.csv')
        self.DEFAULT_OUTPUT_DIR = os.getenv('PIPELINE_OUTPUT_DIR', 'data/processed')
        self.UPLOAD_DIR = os.getenv('PIPELINE_UPLOAD_DIR', 'data/uploaded')
        self.JOB_METADATA_FILE = os.getenv('JOB_METADATA_FILE', 'data/job_metadata.json')

        # Merge and Aggregation Settings
        self.CUTOVER_YEAR = _env_optional_int('EV_CUTOVER_YEAR')
        self.NATIONAL_GEOGRAPHY = os.getenv('EV_NATIONAL_GEOGRAPHY', 'Canada')
        self.TOTAL_VEHICLE_TYPE = os.getenv('EV_TOTAL_VEHICLE_TYPE', 'Total, vehicle type')
        self.GLOBAL_ENTITY = os.getenv('EV_GLOBAL_ENTITY', 'World')
        self.GLOBAL_AGGREGATES = _env_list(
            'EV_GLOBAL_AGGREGATES', 'World,Europe,EU27,Rest of the world,Other Europe'
        )

        # Validation Settings
        self.EXCLUDED_GEOGRAPHIES = _env_list(
            'EV_EXCLUDED_GEOGRAPHIES', 'Yukon,Northwest Territories,Nunavut'
        )
        self.STRICT_VALIDATION = os.getenv('EV_STRICT_VALIDATION', 'true').lower() == 'true'

        # Input Column Names
        self.REGISTRATION_COLUMNS = {
            'period': os.getenv('EV_COL_PERIOD', 'REF_DATE'),
            'geography': os.getenv('EV_COL_GEOGRAPHY', 'GEO'),
            'fuel_type': os.getenv('EV_COL_FUEL_TYPE', 'Fuel type'),
            'vehicle_type': os.getenv('EV_COL_VEHICLE_TYPE', 'Vehicle type'),
            'count': os.getenv('EV_COL_COUNT', 'VALUE'),
        }
        self.GLOBAL_COLUMNS = {
            'entity': os.getenv('EV_COL_ENTITY', 'Entity'),
            'year': os.getenv('EV_COL_YEAR', 'Year'),
            'ev_sales': os.getenv('EV_COL_EV_SALES', 'Electric cars sold'),
            'non_ev_sales': os.getenv('EV_COL_NON_EV_SALES', 'Non-electric car sales'),
        }

        # Service Settings
        self.API_PORT = int(os.getenv('API_PORT', '8000'))

        # Logging Configuration
        self.LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

        # Override with provided config
        if config_dict:
            self._update_from_dict(config_dict)

    def _update_from_dict(self, config_dict: Dict[str, Any]) -> None:
        """Update configuration from dictionary."""
        for key, value in config_dict.items():
            if hasattr(self, key.upper()):
                setattr(self, key.upper(), value)

    def get_data_paths(self) -> Dict[str, Path]:
        """Get all configured data paths as Path objects."""
        return {
            'yearly_file': Path(self.YEARLY_FILE),
            'quarterly_file': Path(self.QUARTERLY_FILE),
            'global_file': Path(self.GLOBAL_FILE),
            'output_dir': Path(self.DEFAULT_OUTPUT_DIR),
            'upload_dir': Path(self.UPLOAD_DIR),
            'raw_data_dir': Path(self.YEARLY_FILE).parent,
            'logs_dir': Path('logs')
        }

    def ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        for path_name, path in self.get_data_paths().items():
            if path_name.endswith('_dir'):
                path.mkdir(parents=True, exist_ok=True)

    def validate_config(self) -> Dict[str, bool]:
        """
        Validate configuration values.

        Returns:
            dict: Validation results for each setting
        """
        validations = {}

        validations['chunk_size'] = self.DEFAULT_CHUNK_SIZE > 0
        validations['cutover_year'] = self.CUTOVER_YEAR is None or 1900 <= self.CUTOVER_YEAR <= 2100
        validations['national_geography'] = bool(self.NATIONAL_GEOGRAPHY)
        validations['national_not_excluded'] = self.NATIONAL_GEOGRAPHY not in self.EXCLUDED_GEOGRAPHIES
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
        lines = ["Configuration Settings:"]
        for key, value in sorted(self.to_dict().items()):
            lines.append(f"  {key}: {value}")
        return "\n".join(lines)
