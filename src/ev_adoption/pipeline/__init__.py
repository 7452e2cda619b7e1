# ========================
# src/ev_adoption/pipeline/__init__.py
# ========================

"""
Data Pipeline Package

This package contains all core components of the EV adoption pipeline:
- ingestion: CSV reading
- normalization: shared record schema for the yearly, quarterly and global extracts
- validation: excluded-geography, category parity and uniqueness checks
- merging: fine-grain-preferring union and EV classification
- transformation: shares, growth rates, rankings
- projection: saturation year estimates
- storage: output management
- orchestrator: pipeline coordination
"""

from .errors import PipelineError, SchemaError, ValidationError, ProjectionError
from .models import Classification, RegistrationRecord, GlobalSalesRecord
from .ingestion import CSVReader, load_table
from .normalization import SchemaNormalizer
from .validation import DataValidator, check_zero_evidence, check_category_parity
from .merging import classify, union_preferring_fine_grain
from .transformation import DataAggregator, share_by_period, growth_rate
from .projection import years_to_saturation, saturation_window, describe_saturation
from .storage import DataSaver
from .orchestrator import EVAdoptionPipeline

__all__ = [
    'PipelineError',
    'SchemaError',
    'ValidationError',
    'ProjectionError',
    'Classification',
    'RegistrationRecord',
    'GlobalSalesRecord',
    'CSVReader',
    'load_table',
    'SchemaNormalizer',
    'DataValidator',
    'check_zero_evidence',
    'check_category_parity',
    'classify',
    'union_preferring_fine_grain',
    'DataAggregator',
    'share_by_period',
    'growth_rate',
    'years_to_saturation',
    'saturation_window',
    'describe_saturation',
    'DataSaver',
    'EVAdoptionPipeline',
]
