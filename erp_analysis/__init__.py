"""
OpenBCI ERP Analysis Package

Turns one oddball recording into target and non-target event-related
potentials: line-noise and band-pass conditioning, flash detection from a
photodiode or digital trigger line, pulse-width classification, and
baseline-corrected epoch averaging with a full trial log.
"""

__version__ = "1.0.0"

# Main components for easy import
from .config import Config, validate_config
from .data_io import SampleTableSchema, load_csv, load_openbci_txt, table_from_arrays
from .data_types import ClassifiedEvent, ErpResult, Event, SampleTable, TrialLabel, TrialLog
from .exceptions import ConfigurationError, EmptyResultWarning, MalformedInputError, ToleranceOverlapWarning
from .fake_data import synthesize_erp_session
from .pipeline import run_erp_pipeline

__all__ = [
    'Config', 'validate_config',
    'SampleTableSchema', 'load_csv', 'load_openbci_txt', 'table_from_arrays',
    'ClassifiedEvent', 'ErpResult', 'Event', 'SampleTable', 'TrialLabel', 'TrialLog',
    'ConfigurationError', 'EmptyResultWarning', 'MalformedInputError', 'ToleranceOverlapWarning',
    'synthesize_erp_session',
    'run_erp_pipeline',
]
