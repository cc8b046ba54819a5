"""
Configuration settings for the ERP analysis pipeline

This module defines the main configuration dataclass that controls all aspects
of the analysis, from signal conditioning to trial classification and output.
"""

import logging
import os
import warnings
from dataclasses import dataclass, asdict
from typing import List, Optional

import numpy as np

from .data_types import EpochGeometry
from .exceptions import ConfigurationError, ToleranceOverlapWarning

TRIGGER_MODES = ("digital", "threshold")


@dataclass
class Config:
    """
    Configuration for ERP extraction from an OpenBCI recording

    Hardware/Data Parameters:
    - fs: Sampling frequency in Hz (250 Hz for the Cyton board)
    - ch_labels: Electrode labels for the neural channels, in column order

    Conditioning Parameters:
    - notch_hz / notch_half_width: Line-noise band-stop (59-61 Hz by default)
    - bp_low / bp_high: Band-pass limits keeping the ERP range
    - polarity: Sign applied after filtering (-1 for OpenBCI inputs)

    Stimulus Detection:
    - trigger_mode: "digital" reads one bit of a packed byte, "threshold"
      reads an analog photodiode trace
    - min_pulse_width: Digital pulses shorter than this are electrical glitches

    Trial Classes:
    - short_width/short_tol: Non-target flash width in samples (digital mode
      measures first to last low sample)
    - long_width/long_tol: Target flash width in samples
    """

    # Sampling and epoch window
    fs: float = 250.0                   # Sampling frequency (Hz)
    pre_stim: float = 0.2               # Seconds before onset (baseline window)
    post_stim: float = 0.8              # Seconds after onset

    # Signal conditioning
    notch_hz: float = 60.0              # Power line frequency (50 for EU, 60 for US)
    notch_half_width: float = 1.0       # Stop band is notch_hz +/- this (Hz)
    notch_order: int = 2
    bp_low: float = 0.5                 # Band-pass low cut (Hz), removes drift
    bp_high: float = 30.0               # Band-pass high cut (Hz)
    bp_order: int = 4
    polarity: int = -1

    # Stimulus detection
    trigger_mode: str = "digital"       # "digital" or "threshold"
    threshold: float = 700.0            # Photodiode level; below = flash
    trigger_bit: int = 7                # Bit of the packed byte (7 = pin D17)
    min_pulse_width: int = 30           # Glitch rejection width (samples)

    # Pulse-width classes (samples)
    short_width: int = 45               # ~176 ms at 250 Hz -> non-target
    short_tol: int = 10
    long_width: int = 135               # ~544 ms at 250 Hz -> target
    long_tol: int = 10

    baseline_correct: bool = True
    keep_epochs: bool = True

    # Channels
    ch_labels: List[str] = None

    # Output paths
    out_npz: str = "results/erp_results.npz"
    out_meta: str = "results/erp_meta.json"
    out_fig_dir: Optional[str] = None
    out_evoked: Optional[str] = None

    def __post_init__(self):
        if self.ch_labels is None:
            self.ch_labels = ['AFz', 'Fz', 'Cz', 'CP2', 'Pz', 'P3', 'P4', 'O1']

    @property
    def samples_pre(self) -> int:
        return int(round(self.pre_stim * self.fs))

    @property
    def samples_post(self) -> int:
        return int(round(self.post_stim * self.fs))

    @property
    def geometry(self) -> EpochGeometry:
        return EpochGeometry(self.samples_pre, self.samples_post)

    @property
    def epoch_length(self) -> int:
        return self.samples_pre + self.samples_post

    def time_vector(self) -> np.ndarray:
        return self.geometry.time_vector(self.fs)

    def to_dict(self) -> dict:
        return asdict(self)


def tolerance_bands_overlap(config: Config) -> bool:
    """
    True if some duration falls inside both pulse-width bands

    The bands are [width - tol, width + tol]. They share at least one
    integer duration when the distance between the centres is no larger
    than the sum of the tolerances. Classification still works in that case
    (the short band is tested first), but the overlap usually means the
    widths were mistyped.
    """
    return abs(config.long_width - config.short_width) <= config.short_tol + config.long_tol


def ensure_output_dirs(config: Config) -> None:
    """
    Create output directories if they don't exist

    Args:
        config: Configuration object with output paths
    """
    output_files = [config.out_npz, config.out_meta, config.out_evoked]

    directories = [os.path.dirname(path) for path in output_files if path]
    if config.out_fig_dir:
        directories.append(config.out_fig_dir)

    for directory in directories:
        if directory and not os.path.exists(directory):
            os.makedirs(directory, exist_ok=True)
            logging.info(f"Created output directory: {directory}")


def validate_config(config: Config, n_channels: Optional[int] = None) -> None:
    """
    Validate configuration parameters before any data is touched

    Args:
        config: Configuration to validate
        n_channels: Number of neural channels in the data, if known

    Raises:
        ConfigurationError: If configuration parameters are invalid
    """
    if config.fs <= 0:
        raise ConfigurationError(f"Sampling rate must be positive, got {config.fs}")

    nyquist = config.fs / 2

    # Notch stop band
    if config.notch_half_width <= 0:
        raise ConfigurationError(f"Notch half-width must be positive, got {config.notch_half_width}")

    notch_low = config.notch_hz - config.notch_half_width
    notch_high = config.notch_hz + config.notch_half_width
    if notch_low <= 0 or notch_high >= nyquist:
        raise ConfigurationError(
            f"Notch stop band {notch_low}-{notch_high} Hz must lie inside (0, {nyquist}) Hz"
        )

    # Band-pass
    if config.bp_low <= 0:
        raise ConfigurationError(f"Band-pass low ({config.bp_low}) must be > 0")

    if config.bp_low >= config.bp_high:
        raise ConfigurationError(f"Band-pass low ({config.bp_low}) must be < high ({config.bp_high})")

    if config.bp_high >= nyquist:
        raise ConfigurationError(f"Band-pass high ({config.bp_high}) must be < Nyquist ({nyquist})")

    if config.notch_order <= 0 or config.bp_order <= 0:
        raise ConfigurationError(
            f"Filter orders must be positive, got notch={config.notch_order}, bp={config.bp_order}"
        )

    if config.polarity not in (-1, 1):
        raise ConfigurationError(f"Polarity must be -1 or 1, got {config.polarity}")

    # Epoch window
    if config.pre_stim < 0 or config.samples_pre < 0:
        raise ConfigurationError(f"Pre-stimulus window must be >= 0, got {config.pre_stim}s")

    if config.samples_post <= 0:
        raise ConfigurationError(
            f"Post-stimulus window must cover at least one sample, got {config.post_stim}s"
        )

    # Stimulus detection
    if config.trigger_mode not in TRIGGER_MODES:
        raise ConfigurationError(f"Trigger mode must be one of {TRIGGER_MODES}, got '{config.trigger_mode}'")

    if not 0 <= config.trigger_bit <= 31:
        raise ConfigurationError(f"Trigger bit must be in 0..31, got {config.trigger_bit}")

    if config.min_pulse_width < 0:
        raise ConfigurationError(f"Minimum pulse width must be >= 0, got {config.min_pulse_width}")

    # Pulse-width classes
    if config.short_width <= 0 or config.long_width <= 0:
        raise ConfigurationError(
            f"Expected pulse widths must be positive, got short={config.short_width}, long={config.long_width}"
        )

    if config.short_tol < 0 or config.long_tol < 0:
        raise ConfigurationError(
            f"Tolerances must be >= 0, got short={config.short_tol}, long={config.long_tol}"
        )

    if n_channels is not None and len(config.ch_labels) != n_channels:
        raise ConfigurationError(
            f"Got {len(config.ch_labels)} channel labels for {n_channels} channels"
        )

    if tolerance_bands_overlap(config):
        message = (
            f"Pulse-width bands overlap: short {config.short_width}±{config.short_tol}, "
            f"long {config.long_width}±{config.long_tol}. Durations in both bands "
            f"are classified as non-target."
        )
        logging.warning(message)
        warnings.warn(message, ToleranceOverlapWarning, stacklevel=2)

    logging.info("Configuration validation passed")
