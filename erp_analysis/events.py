"""
Stimulus event detection

Finds flash onsets and flash widths on an auxiliary channel. Two sources are
supported:

- threshold: an analog photodiode trace that drops below a level while the
  screen flashes
- digital: a packed trigger byte per sample; one bit is pulled low during
  the flash

The two sources measure width differently. A photodiode event counts its
below-threshold samples; a digital event spans first to last low sample,
one less than the number of low samples. Pulse-width classes are set for the
source in use.

Returned events are in chronological order with unique onsets.
"""

import logging
from typing import List, Tuple

import numpy as np

from .data_types import Event


def detect_threshold_events(aux: np.ndarray, threshold: float = 700.0) -> List[Event]:
    """
    Detect flashes on a continuous photodiode trace

    An event starts where the signal crosses from >= threshold to below it.
    Its duration is the number of consecutive below-threshold samples.

    Args:
        aux: Photodiode trace [samples]
        threshold: Level below which the screen is flashing

    Returns:
        List of Event, onset ascending
    """
    aux = np.asarray(aux, dtype=float)
    below = aux < threshold

    # Crossings only: a trace already below threshold at sample 0 has no onset
    onsets = np.flatnonzero(below[1:] & ~below[:-1]) + 1

    events = []
    n_samples = len(aux)
    for onset in onsets:
        stop = onset
        while stop < n_samples and below[stop]:
            stop += 1
        events.append(Event(onset=int(onset), duration=int(stop - onset)))

    logging.info(f"Threshold detection ({threshold}): {len(events)} events")
    return events


def extract_trigger_bit(values: np.ndarray, bit: int = 7) -> np.ndarray:
    """
    Return the boolean flash trace for one trigger line

    The Cyton reports its digital pins as one packed byte per sample, so the
    trigger line has to be masked out before looking for edges; the other
    pins toggle independently and must not create events. The trigger line
    is active low: a 0 bit means the flash is on.

    Args:
        values: Packed trigger values, integer-valued (finite)
        bit: Bit index of the trigger line (7 = pin D17)

    Returns:
        Boolean array, True while the flash is on
    """
    packed = np.asarray(values).astype(np.int64)
    return ((packed >> bit) & 1) == 0


def find_active_spans(active: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Find start and stop samples of every active span

    Stops are the first inactive sample after each span (the recording length
    if a span runs to the end), so stop - start is the span width.
    """
    active = np.asarray(active, dtype=bool)
    padded = np.concatenate(([False], active, [False])).astype(np.int8)
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    stops = np.flatnonzero(edges == -1)
    return starts, stops


def reject_glitches(events: List[Event], min_width: int) -> Tuple[List[Event], int]:
    """
    Drop pulses whose measured duration is below min_width samples

    The OpenBCI digital inputs pick up short electrical spikes that pull a
    trigger line low for a few samples. Real flashes last tens of samples, so
    anything shorter than min_width is treated as noise. Rejected pulses are
    not events: they get no index and only show up in the glitch count.

    Args:
        events: Detected pulses in chronological order
        min_width: Smallest duration kept, in samples

    Returns:
        Tuple of (kept events, number of rejected glitches)
    """
    kept = [event for event in events if event.duration >= min_width]
    n_glitches = len(events) - len(kept)
    if n_glitches:
        logging.info(f"Rejected {n_glitches} glitch pulses shorter than {min_width} samples")
    return kept, n_glitches


def detect_digital_events(
    values: np.ndarray,
    bit: int = 7,
    min_width: int = 30
) -> Tuple[List[Event], int]:
    """
    Detect flashes on one line of a packed digital trigger channel

    The trigger line is pulled low for the whole flash. Each low span becomes
    one event whose duration is measured from the first to the last low
    sample (last - first), which is one less than the number of low samples.
    The pulse-width classes and the glitch width are calibrated in this unit,
    so a 30-sample pulse measures 29 and is still a glitch at the default
    min_width of 30.

    Args:
        values: Packed trigger value per sample
        bit: Bit index of the trigger line (0 = least significant)
        min_width: Glitch rejection width in samples

    Returns:
        Tuple of (events, number of rejected glitches)
    """
    active = extract_trigger_bit(values, bit)
    starts, stops = find_active_spans(active)

    # stops are the first inactive sample, stop - 1 is the last active one
    events = [
        Event(onset=int(start), duration=int(stop - 1 - start))
        for start, stop in zip(starts, stops)
    ]
    logging.info(f"Digital detection (bit {bit}): {len(events)} pulses")

    return reject_glitches(events, min_width)


def detect_events(aux: np.ndarray, config) -> Tuple[List[Event], int]:
    """
    Run the detector selected by config.trigger_mode

    Photodiode recordings have no glitch filter, so their glitch count is
    always 0.

    Args:
        aux: Raw auxiliary column (photodiode trace or packed trigger byte)
        config: Analysis configuration

    Returns:
        Tuple of (events, number of rejected glitches)

    Raises:
        ValueError: If the trigger mode is unknown
    """
    if config.trigger_mode == 'threshold':
        return detect_threshold_events(aux, config.threshold), 0

    if config.trigger_mode == 'digital':
        return detect_digital_events(aux, config.trigger_bit, config.min_pulse_width)

    raise ValueError(f"Unknown trigger mode: {config.trigger_mode}")
