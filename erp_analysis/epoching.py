"""
Epoch extraction and averaging

This module cuts a fixed window of conditioned signal around every included
event, optionally removes the pre-stimulus offset, and averages the windows
per trial class.

Averages are kept as a running sum and count per class and divided once at
the end, so the result does not depend on the order in which events are
processed. Workers each fill their own accumulators, which are merged
afterwards.
"""

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np
from joblib import Parallel, delayed

from .data_types import ClassifiedEvent, EpochGeometry, TrialLabel

CLASS_LABELS = (TrialLabel.TARGET, TrialLabel.NON_TARGET)


def extract_epoch(signal: np.ndarray, onset: int, geometry: EpochGeometry) -> np.ndarray:
    """
    Slice the window around an onset

    Args:
        signal: Conditioned EEG [samples x channels]
        onset: Event onset sample
        geometry: Epoch window

    Returns:
        Epoch [epoch_length x channels]

    Raises:
        ValueError: If the window leaves the recording
    """
    start, stop = geometry.bounds(onset)
    if start < 0 or stop > signal.shape[0]:
        raise ValueError(f"Epoch [{start}, {stop}) is outside the recording of {signal.shape[0]} samples")
    return signal[start:stop]


def baseline_correct(epoch: np.ndarray, samples_pre: int) -> np.ndarray:
    """
    Subtract the per-channel mean of the pre-stimulus samples

    Slow drifts that survive the 0.5 Hz high-pass still shift individual
    epochs up or down. Removing the mean of the pre-stimulus interval from
    each channel references every epoch to its own resting level, so the
    post-stimulus deflection is measured relative to what the channel was
    doing just before the flash.

    Mathematical operation:
        corrected[t, ch] = epoch[t, ch] - mean(epoch[0:samples_pre, ch])

    Args:
        epoch: Epoch [epoch_length x channels]
        samples_pre: Number of pre-stimulus samples at the start of the epoch

    Returns:
        Corrected copy of the epoch. With samples_pre == 0 there is no
        baseline and the copy is unchanged.
    """
    if samples_pre == 0:
        return epoch.copy()
    return epoch - epoch[:samples_pre].mean(axis=0)


class EpochAccumulator:
    """Running sum and count of the epochs of one trial class"""

    def __init__(self, epoch_length: int, n_channels: int, keep_epochs: bool = False):
        self.total = np.zeros((epoch_length, n_channels))
        self.count = 0
        self.keep_epochs = keep_epochs
        self.epochs: List[np.ndarray] = []
        self.indices: List[int] = []

    def add(self, epoch: np.ndarray, index: int) -> None:
        self.total += epoch
        self.count += 1
        if self.keep_epochs:
            self.epochs.append(epoch)
            self.indices.append(index)

    def merge(self, other: "EpochAccumulator") -> "EpochAccumulator":
        self.total += other.total
        self.count += other.count
        self.epochs.extend(other.epochs)
        self.indices.extend(other.indices)
        return self

    def mean(self) -> Optional[np.ndarray]:
        """Class average, or None if no epoch was added"""
        if self.count == 0:
            return None
        return self.total / self.count

    def stacked(self) -> Optional[np.ndarray]:
        """Retained epochs [n_trials x epoch_length x channels], in event order"""
        if not self.keep_epochs:
            return None
        if not self.epochs:
            return np.empty((0,) + self.total.shape)
        order = np.argsort(self.indices, kind='stable')
        return np.stack([self.epochs[i] for i in order])


def _new_accumulators(geometry: EpochGeometry, n_channels: int, keep_epochs: bool) -> Dict[TrialLabel, EpochAccumulator]:
    return {label: EpochAccumulator(geometry.length, n_channels, keep_epochs) for label in CLASS_LABELS}


def accumulate_epochs(
    signal: np.ndarray,
    classified: Sequence[ClassifiedEvent],
    geometry: EpochGeometry,
    baseline: bool = True,
    keep_epochs: bool = False
) -> Dict[TrialLabel, EpochAccumulator]:
    """
    Add the epoch of every included event to its class accumulator

    Excluded events are skipped.
    """
    accumulators = _new_accumulators(geometry, signal.shape[1], keep_epochs)

    for item in classified:
        if not item.is_included:
            continue
        epoch = extract_epoch(signal, item.event.onset, geometry)
        if baseline:
            epoch = baseline_correct(epoch, geometry.samples_pre)
        accumulators[item.label].add(epoch, item.index)

    return accumulators


def _chunk(items: Sequence, n_chunks: int) -> List[Sequence]:
    size = max(1, int(np.ceil(len(items) / n_chunks)))
    return [items[i:i + size] for i in range(0, len(items), size)]


def average_epochs(
    signal: np.ndarray,
    classified: Sequence[ClassifiedEvent],
    geometry: EpochGeometry,
    baseline: bool = True,
    n_jobs: int = 1,
    keep_epochs: bool = False
) -> Dict[TrialLabel, EpochAccumulator]:
    """
    Build per-class accumulators, optionally in parallel

    Included events are split into contiguous chunks, one per worker. Each
    worker fills its own accumulators with no shared state, and the partial
    sums are merged afterwards. Because the average is a sum divided by a
    count, the result is the same for any number of workers and any event
    order, up to floating-point rounding. Threads are enough here: the work
    is numpy slicing and addition, which releases the GIL.

    Args:
        signal: Conditioned EEG [samples x channels]
        classified: Labelled events
        geometry: Epoch window
        baseline: Subtract the pre-stimulus mean from each epoch
        n_jobs: Number of workers (1 runs inline, -1 uses all cores)
        keep_epochs: Retain individual epochs for saving/inspection

    Returns:
        Dict mapping TARGET and NON_TARGET to merged accumulators;
        call .mean() for the class average

    Raises:
        ValueError: If n_jobs is 0
    """
    if n_jobs == 0:
        raise ValueError("n_jobs must be a positive worker count or negative (-1 = all cores), got 0")

    signal = np.asarray(signal, dtype=float)
    included = [item for item in classified if item.is_included]

    if n_jobs == 1 or len(included) < 2:
        accumulators = accumulate_epochs(signal, included, geometry, baseline, keep_epochs)
    else:
        n_workers = n_jobs if n_jobs > 0 else len(included)
        chunks = _chunk(included, min(n_workers, len(included)))
        logging.info(f"Averaging {len(included)} epochs in {len(chunks)} chunks")

        partials = Parallel(n_jobs=n_jobs, prefer="threads")(
            delayed(accumulate_epochs)(signal, chunk, geometry, baseline, keep_epochs)
            for chunk in chunks
        )

        accumulators = _new_accumulators(geometry, signal.shape[1], keep_epochs)
        for partial in partials:
            for label in CLASS_LABELS:
                accumulators[label].merge(partial[label])

    for label in CLASS_LABELS:
        logging.info(f"{label.value}: {accumulators[label].count} epochs averaged")

    return accumulators
