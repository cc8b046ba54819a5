"""
Core data types for ERP analysis

This module defines the data structures passed between the pipeline stages:
the input sample table, detected and classified stimulus events, the trial
log and the final averaged result.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd


@dataclass
class SampleTable:
    """Container for one recorded session, one row per sample"""
    data: pd.DataFrame        # Named columns, rows in time order
    fs: float                 # Sampling frequency (Hz)

    @property
    def n_samples(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class Event:
    """A detected stimulus pulse"""
    onset: int                # Sample index of the first active sample
    duration: int             # Pulse width in samples


class TrialLabel(str, Enum):
    """Outcome of classifying one event"""
    TARGET = "target"
    NON_TARGET = "non_target"
    EXCLUDED = "excluded"


@dataclass(frozen=True)
class ClassifiedEvent:
    """An event with exactly one label; excluded events carry a reason"""
    index: int                # Position in detection order
    event: Event
    label: TrialLabel
    reason: Optional[str] = None

    def __post_init__(self):
        if (self.label is TrialLabel.EXCLUDED) != (self.reason is not None):
            raise ValueError("Exactly the excluded events must carry a reason")

    @property
    def is_included(self) -> bool:
        return self.label is not TrialLabel.EXCLUDED


@dataclass(frozen=True)
class EpochGeometry:
    """Epoch window around an onset, in samples"""
    samples_pre: int
    samples_post: int

    @property
    def length(self) -> int:
        return self.samples_pre + self.samples_post

    def bounds(self, onset: int) -> Tuple[int, int]:
        """Half-open [start, stop) slice for an onset"""
        return onset - self.samples_pre, onset + self.samples_post

    def time_vector(self, fs: float) -> np.ndarray:
        """
        Epoch time axis in seconds, 0 at the onset sample

        Runs from -samples_pre / fs to (samples_post - 1) / fs, one value
        per epoch sample.
        """
        return np.arange(-self.samples_pre, self.samples_post) / fs


@dataclass
class TrialLog:
    """Bookkeeping of which events were used and why others were not"""
    n_detected: int = 0
    n_glitches: int = 0
    n_target: int = 0
    n_non_target: int = 0
    included_indices: List[int] = field(default_factory=list)
    excluded: List[Tuple[int, str]] = field(default_factory=list)
    events: List[ClassifiedEvent] = field(default_factory=list)

    @property
    def n_included(self) -> int:
        return len(self.included_indices)

    @property
    def n_excluded(self) -> int:
        return len(self.excluded)

    @classmethod
    def from_classified(cls, classified: List[ClassifiedEvent], n_glitches: int = 0) -> "TrialLog":
        """
        Tally classified events

        Every event lands in exactly one of the target, non-target or
        excluded lists, so n_target + n_non_target + n_excluded always
        equals n_detected. Glitches were rejected before classification and
        are only counted.
        """
        log = cls(n_detected=len(classified), n_glitches=n_glitches, events=list(classified))
        for item in classified:
            if item.label is TrialLabel.TARGET:
                log.n_target += 1
                log.included_indices.append(item.index)
            elif item.label is TrialLabel.NON_TARGET:
                log.n_non_target += 1
                log.included_indices.append(item.index)
            else:
                log.excluded.append((item.index, item.reason))
        return log

    def to_frame(self) -> pd.DataFrame:
        """One row per detected event"""
        rows = [
            {
                'event_index': item.index,
                'onset': item.event.onset,
                'duration': item.event.duration,
                'label': item.label.value,
                'reason': item.reason or '',
            }
            for item in self.events
        ]
        return pd.DataFrame(rows, columns=['event_index', 'onset', 'duration', 'label', 'reason'])


@dataclass
class ErpResult:
    """Averaged waveforms and trial bookkeeping for one session"""
    target_average: Optional[np.ndarray]       # (epoch_length, n_channels) or None
    non_target_average: Optional[np.ndarray]   # (epoch_length, n_channels) or None
    time_vector: np.ndarray                    # Seconds relative to onset
    ch_labels: List[str]
    trial_log: TrialLog
    fs: float
    target_epochs: Optional[np.ndarray] = None      # (n_trials, epoch_length, n_channels)
    non_target_epochs: Optional[np.ndarray] = None
    diagnostics: List[str] = field(default_factory=list)

    def average(self, label: TrialLabel) -> Optional[np.ndarray]:
        """
        Class average for a label

        Returns:
            [epoch_length x channels] array, or None if the class collected
            no epochs

        Raises:
            ValueError: For TrialLabel.EXCLUDED, which is never averaged
        """
        if label is TrialLabel.TARGET:
            return self.target_average
        if label is TrialLabel.NON_TARGET:
            return self.non_target_average
        raise ValueError(f"No average exists for label {label.value!r}")

    def has_average(self, label: TrialLabel) -> bool:
        return self.average(label) is not None
