"""
Synthetic oddball session generation

This module creates an OpenBCI-like recording for testing the analysis
without real EEG. It mimics a visual oddball paradigm:

- Frequent short flashes (non-target) and rare long flashes (target)
- A P300-like positive deflection ~300 ms after target onsets, strongest
  over parietal sites
- A photodiode trace that drops during each flash
- A packed digital trigger byte whose bit 7 is pulled low during each flash
"""

import logging
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from .data_io import EXG_CHANNELS
from .data_types import SampleTable, TrialLabel

DARK_LEVEL = 900.0      # Photodiode reading with the screen dark
FLASH_LEVEL = 200.0     # Photodiode reading during a flash
IDLE_BYTE = 0xFF        # All trigger lines high
FLASH_BYTE = 0x7F       # Bit 7 (D17) low


def synthesize_erp_session(
    n_target: int = 20,
    n_non_target: int = 80,
    fs: float = 250.0,
    short_width: int = 45,
    long_width: int = 135,
    soa: float = 1.5,
    lead_in: float = 1.0,
    p300_uV: float = 8.0,
    noise_uV: float = 5.0,
    n_glitches: int = 0,
    seed: int = 42,
    ch_names: Optional[List[str]] = None
) -> Tuple[SampleTable, List[Tuple[int, TrialLabel]]]:
    """
    Generate a synthetic oddball recording

    Args:
        n_target: Number of long (target) flashes
        n_non_target: Number of short (non-target) flashes
        fs: Sampling frequency in Hz
        short_width/long_width: Flash widths in samples (a digital flash of W
            low samples measures W - 1)
        soa: Stimulus onset asynchrony in seconds
        lead_in: Silence before the first flash and after the last, in seconds
        p300_uV: Peak amplitude of the target response
        noise_uV: Standard deviation of background noise
        n_glitches: Number of 1-5 sample trigger glitches to insert between flashes
        seed: Random seed for reproducibility
        ch_names: Neural column names (default: the 8 OpenBCI EXG channels)

    Returns:
        Tuple of:
        - table: SampleTable with OpenBCI canonical columns
        - truth: List of (onset_sample, label) per flash
    """
    if ch_names is None:
        ch_names = list(EXG_CHANNELS)

    rng = np.random.RandomState(seed)
    logging.info(f"Generating synthetic oddball data: {n_target} target, {n_non_target} non-target trials")

    labels = [TrialLabel.TARGET] * n_target + [TrialLabel.NON_TARGET] * n_non_target
    rng.shuffle(labels)

    soa_samples = int(round(soa * fs))
    lead_samples = int(round(lead_in * fs))
    n_samples = 2 * lead_samples + len(labels) * soa_samples

    # Background noise, mildly low-passed so it looks like EEG
    noise = rng.randn(n_samples, len(ch_names)) * noise_uV
    kernel = np.ones(5) / 5
    eeg = np.apply_along_axis(lambda x: np.convolve(x, kernel, mode='same'), 0, noise)

    # Parietal channels carry the strongest P300
    weights = np.linspace(0.3, 1.0, len(ch_names))

    analog = np.full(n_samples, DARK_LEVEL) + rng.randn(n_samples) * 5.0
    digital = np.full(n_samples, IDLE_BYTE, dtype=np.int64)

    t_response = np.arange(int(0.8 * fs)) / fs
    p300 = p300_uV * np.exp(-0.5 * ((t_response - 0.3) / 0.05) ** 2)

    truth = []
    for k, label in enumerate(labels):
        onset = lead_samples + k * soa_samples
        width = long_width if label is TrialLabel.TARGET else short_width

        analog[onset:onset + width] = FLASH_LEVEL
        digital[onset:onset + width] = FLASH_BYTE

        if label is TrialLabel.TARGET:
            stop = min(onset + len(p300), n_samples)
            # Acquisition polarity is inverted; conditioning flips it back
            eeg[onset:stop] -= np.outer(p300[:stop - onset], weights)

        truth.append((onset, label))

    # At most one glitch per trial, after the flash has ended
    for k in rng.choice(len(labels), size=n_glitches, replace=False):
        start = lead_samples + k * soa_samples + long_width + int(0.2 * fs)
        digital[start:start + rng.randint(1, 6)] = FLASH_BYTE

    columns = {
        'sample_index': np.arange(n_samples) % 256,
        'timestamp': 1.7e9 + np.arange(n_samples) / fs,
        'analog_0': analog,
        'digital_d17': digital,
    }
    columns.update({name: eeg[:, i] for i, name in enumerate(ch_names)})

    logging.info(f"Generated {len(truth)} flashes, total duration: {n_samples / fs:.1f}s")

    return SampleTable(data=pd.DataFrame(columns), fs=fs), truth
