"""
Data input functions for ERP analysis

This module turns OpenBCI recordings into a SampleTable with canonical column
names and checks that a table satisfies the named-column contract the
pipeline relies on. The analysis itself never looks at file formats.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

import numpy as np
import pandas as pd

from .data_types import SampleTable
from .exceptions import MalformedInputError

# Column order of an OpenBCI GUI RAW export (Cyton, digital read mode)
OPENBCI_COLUMNS = [
    'sample_index',
    'exg_0', 'exg_1', 'exg_2', 'exg_3', 'exg_4', 'exg_5', 'exg_6', 'exg_7',
    'accel_0', 'accel_1', 'accel_2',
    'not_used_0',
    'digital_d11', 'digital_d12', 'digital_d13', 'digital_d17',
    'not_used_1',
    'digital_d18',
    'analog_0', 'analog_1', 'analog_2',
    'timestamp', 'marker', 'timestamp_formatted',
]

EXG_CHANNELS = [f'exg_{i}' for i in range(8)]

_SAMPLE_RATE_RE = re.compile(r'Sample Rate\s*=\s*([\d.]+)')


@dataclass
class SampleTableSchema:
    """Named columns the pipeline reads from a SampleTable"""
    ch_names: List[str] = field(default_factory=lambda: list(EXG_CHANNELS))
    analog_col: str = 'analog_0'
    digital_col: str = 'digital_d17'
    index_col: Optional[str] = 'timestamp'

    def aux_col(self, trigger_mode: str) -> str:
        return self.digital_col if trigger_mode == 'digital' else self.analog_col


def table_from_arrays(columns: Mapping[str, np.ndarray], fs: float) -> SampleTable:
    """
    Build a SampleTable from separate per-column arrays

    Raises:
        MalformedInputError: If the columns do not all have the same length
    """
    lengths = {name: len(values) for name, values in columns.items()}
    if len(set(lengths.values())) > 1:
        raise MalformedInputError(f"Column lengths differ: {lengths}")

    return SampleTable(data=pd.DataFrame({name: np.asarray(values) for name, values in columns.items()}), fs=fs)


def validate_sample_table(
    table: SampleTable,
    schema: SampleTableSchema,
    trigger_mode: str
) -> None:
    """
    Check a SampleTable against the named-column contract

    The pipeline reads columns by name only, so every column it will touch is
    checked here before any filtering starts: the neural channels, the
    auxiliary column of the selected trigger mode (the other one may be
    absent) and the sample index. A single missing value would otherwise
    spread over a whole channel through the zero-phase filters, and on the
    trigger column it would read as a flash.

    Args:
        table: Session to check
        schema: Column names the pipeline will read
        trigger_mode: Selects which auxiliary column is required

    Raises:
        MalformedInputError: If columns are missing, empty, non-numeric,
            non-finite or out of order
    """
    if table.fs is None or table.fs <= 0:
        raise MalformedInputError(f"Sample rate must be positive, got {table.fs}")

    if not schema.ch_names:
        raise MalformedInputError("Schema names no neural channels")

    df = table.data
    required = list(schema.ch_names) + [schema.aux_col(trigger_mode)]
    if schema.index_col is not None:
        required.append(schema.index_col)

    missing = [col for col in required if col not in df.columns]
    if missing:
        raise MalformedInputError(
            f"Missing columns in sample table: {missing}. Available columns: {list(df.columns)}"
        )

    if len(df) == 0:
        raise MalformedInputError("Sample table has no rows")

    non_numeric = [col for col in required if not pd.api.types.is_numeric_dtype(df[col])]
    if non_numeric:
        raise MalformedInputError(f"Non-numeric columns in sample table: {non_numeric}")

    # Blank fields come back as NaN; they would spread through the filters and
    # read as a low trigger bit
    finite = np.isfinite(df[required].to_numpy(dtype=float))
    if not finite.all():
        bad_columns = [col for col, ok in zip(required, finite.all(axis=0)) if not ok]
        first_bad = int(np.flatnonzero(~finite.all(axis=1))[0])
        raise MalformedInputError(
            f"Non-finite values in sample table columns {bad_columns} (first at row {first_bad})"
        )

    if schema.index_col is not None and not df[schema.index_col].is_monotonic_increasing:
        raise MalformedInputError(f"Sample index column '{schema.index_col}' is not monotonic")

    logging.debug(f"Sample table OK: {len(df)} samples, {len(schema.ch_names)} channels")


def _read_header(path: str):
    """Return (number of '%' header lines, sample rate or None)"""
    n_header = 0
    fs = None
    with open(path, 'r', encoding='utf-8', errors='replace') as f:
        for line in f:
            if not line.startswith('%'):
                break
            n_header += 1
            match = _SAMPLE_RATE_RE.search(line)
            if match:
                fs = float(match.group(1))
    return n_header, fs


def load_openbci_txt(path: str, fs: Optional[float] = None) -> SampleTable:
    """
    Load an OpenBCI GUI RAW .txt export

    The export starts with '%' comment lines, then one header row, then
    comma-separated samples. Several columns share the name "Other", so the
    columns are renamed by position to OPENBCI_COLUMNS.

    Args:
        path: Path to the RAW .txt file
        fs: Sampling frequency; read from the '%Sample Rate' header if None

    Returns:
        SampleTable with canonical column names

    Raises:
        FileNotFoundError: If the file doesn't exist
        MalformedInputError: If the column layout is not the expected one
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"OpenBCI file not found: {path}")

    logging.info(f"Loading OpenBCI data from: {path}")

    n_header, header_fs = _read_header(path)
    if fs is None:
        fs = header_fs if header_fs is not None else 250.0
        logging.info(f"Sampling rate: {fs} Hz")

    df = pd.read_csv(path, skiprows=n_header, skipinitialspace=True)

    if len(df.columns) != len(OPENBCI_COLUMNS):
        raise MalformedInputError(
            f"Expected {len(OPENBCI_COLUMNS)} columns in OpenBCI export, got {len(df.columns)}"
        )

    df.columns = OPENBCI_COLUMNS
    logging.info(f"Loaded {len(df)} samples ({len(df) / fs:.1f}s)")

    return SampleTable(data=df, fs=fs)


def load_csv(path: str, fs: float) -> SampleTable:
    """
    Load a CSV that already uses canonical column names

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"CSV file not found: {path}")

    logging.info(f"Loading CSV data from: {path}")
    df = pd.read_csv(path)
    logging.info(f"CSV shape: {df.shape}")

    return SampleTable(data=df, fs=fs)
