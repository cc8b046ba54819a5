"""
Signal conditioning for ERP analysis

This module removes power line interference and restricts every neural
channel to the ERP frequency range, then applies the acquisition polarity.

All filters run forward and backward (zero phase) so that waveform latencies
relative to the stimulus onset are preserved. This needs the whole channel at
once; the conditioning cannot be applied chunk by chunk.
"""

import logging

import numpy as np
from scipy import signal

from .exceptions import ConfigurationError, MalformedInputError


def design_notch(fs: float, notch_hz: float, half_width: float, order: int = 2) -> np.ndarray:
    """
    Design a Butterworth band-stop around the line frequency

    Mains interference (60 Hz in the US, 50 Hz in Europe) is usually the
    largest artifact in an OpenBCI recording, far larger than an ERP. A narrow
    stop band (+/- 1 Hz by default) removes it while leaving the rest of the
    spectrum alone. The 30 Hz band-pass would attenuate 60 Hz as well, but not
    by enough when the line noise is strong.

    Args:
        fs: Sampling frequency in Hz
        notch_hz: Line frequency
        half_width: Half-width of the stop band in Hz
        order: Butterworth order

    Returns:
        Second-order sections for sosfiltfilt

    Raises:
        ConfigurationError: If the stop band is not inside (0, fs/2)
    """
    nyquist = fs / 2
    low = (notch_hz - half_width) / nyquist
    high = (notch_hz + half_width) / nyquist

    if not 0 < low < high < 1:
        raise ConfigurationError(
            f"Notch stop band {notch_hz - half_width}-{notch_hz + half_width} Hz "
            f"must lie inside (0, {nyquist}) Hz"
        )

    return signal.butter(order, [low, high], btype='bandstop', output='sos')


def design_bandpass(fs: float, bp_low: float, bp_high: float, order: int = 4) -> np.ndarray:
    """
    Design a Butterworth band-pass

    Why 0.5-30 Hz for ERPs:
    - Below 0.5 Hz: electrode drift and sweat potentials, which shift whole
      epochs and swamp slow components
    - Above 30 Hz: muscle activity and residual line noise
    - The P300 and earlier visual components sit well inside this range

    Butterworth has a flat pass band, so amplitudes inside the band are
    not distorted. Second-order sections keep the very low 0.5 Hz corner
    numerically stable at 250 Hz.

    Args:
        fs: Sampling frequency in Hz
        bp_low: Low cutoff in Hz
        bp_high: High cutoff in Hz
        order: Butterworth order

    Returns:
        Second-order sections for sosfiltfilt

    Raises:
        ConfigurationError: If the band is not 0 < low < high < fs/2
    """
    nyquist = fs / 2

    if bp_high >= nyquist:
        raise ConfigurationError(f"Band-pass high ({bp_high}) must be < Nyquist ({nyquist})")

    if not 0 < bp_low < bp_high:
        raise ConfigurationError(f"Band-pass must satisfy 0 < low ({bp_low}) < high ({bp_high})")

    return signal.butter(order, [bp_low / nyquist, bp_high / nyquist], btype='bandpass', output='sos')


def _min_samples(sos: np.ndarray) -> int:
    # Default edge padding used by sosfiltfilt; the signal must be longer
    n_zeros = min((sos[:, 2] == 0).sum(), (sos[:, 5] == 0).sum())
    return 3 * (2 * len(sos) + 1 - n_zeros)


def zero_phase_filter(data: np.ndarray, sos: np.ndarray) -> np.ndarray:
    """
    Filter each channel forward and backward

    Args:
        data: Signal [samples x channels]
        sos: Filter second-order sections

    Returns:
        Filtered signal, same shape
    """
    padlen = _min_samples(sos)
    if data.shape[0] <= padlen:
        raise MalformedInputError(
            f"Recording has {data.shape[0]} samples; zero-phase filtering needs more than {padlen}"
        )

    return signal.sosfiltfilt(sos, data, axis=0)


def condition_signal(
    data: np.ndarray,
    fs: float,
    notch_hz: float = 60.0,
    notch_half_width: float = 1.0,
    bp_low: float = 0.5,
    bp_high: float = 30.0,
    polarity: int = -1,
    notch_order: int = 2,
    bp_order: int = 4
) -> np.ndarray:
    """
    Apply the conditioning chain to raw neural channels

    Steps, identical for every channel:
    1. Band-stop around the line frequency (zero phase)
    2. Band-pass to the ERP range (zero phase)
    3. Multiply by the polarity sign

    Args:
        data: Raw EEG [samples x channels]
        fs: Sampling frequency in Hz
        notch_hz: Line frequency to remove
        notch_half_width: Half-width of the stop band in Hz
        bp_low: Band-pass low cutoff in Hz
        bp_high: Band-pass high cutoff in Hz
        polarity: -1 or 1
        notch_order: Butterworth order of the band-stop
        bp_order: Butterworth order of the band-pass

    Returns:
        Conditioned EEG with the same shape as the input
    """
    data = np.asarray(data, dtype=float)
    if data.ndim == 1:
        data = data[:, np.newaxis]

    logging.info(f"Conditioning signal of shape {data.shape} at {fs} Hz")

    notch_sos = design_notch(fs, notch_hz, notch_half_width, notch_order)
    bp_sos = design_bandpass(fs, bp_low, bp_high, bp_order)
    logging.info(
        f"Filters designed: notch {notch_hz}±{notch_half_width} Hz, "
        f"band-pass {bp_low}-{bp_high} Hz (order {bp_order})"
    )

    conditioned = zero_phase_filter(data, notch_sos)
    conditioned = zero_phase_filter(conditioned, bp_sos)

    return polarity * conditioned
