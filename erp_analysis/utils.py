"""
Utility functions for the ERP analysis pipeline

This module provides helper functions for logging, trial summaries, ERP
plots, and saving results to disk (NumPy archive, JSON metadata and MNE
evoked files).
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

import numpy as np
import matplotlib.pyplot as plt
import mne

from .data_types import ErpResult, TrialLabel

mne.set_log_level('WARNING')

# Plot colours per class
CLASS_COLORS = {
    TrialLabel.NON_TARGET: (0.929, 0.694, 0.125),
    TrialLabel.TARGET: (0.0, 0.447, 0.741),
}

CLASS_NAMES = {
    TrialLabel.NON_TARGET: 'Non-Target',
    TrialLabel.TARGET: 'Target',
}


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for the analysis

    Args:
        debug: If True, enable DEBUG level logging (per-trial exclusions)
    """
    log_level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    # Reduce verbosity of some third-party libraries
    logging.getLogger('matplotlib').setLevel(logging.WARNING)
    logging.getLogger('mne').setLevel(logging.WARNING)

    if debug:
        logging.info("Debug logging enabled")


def print_trial_summary(result: ErpResult) -> None:
    """
    Print trial counts and every exclusion

    Lists each excluded trial with its reason, so the operator can tell
    recording problems (epochs running off the recording) from stimulus
    problems (flash widths matching neither class).
    """
    log = result.trial_log

    print("\n--- Trial Summary ---")
    print(f"Total detected trials: {log.n_detected}")
    if log.n_glitches:
        print(f"Glitch pulses removed: {log.n_glitches}")
    print(f"Included trials: {log.n_included}")
    print(f"  Target trials: {log.n_target}")
    print(f"  Non-target trials: {log.n_non_target}")
    print(f"Excluded trials: {log.n_excluded}")

    if log.excluded:
        print(f"\nExcluded trial indices: {[index for index, _ in log.excluded]}")
        for index, reason in log.excluded:
            print(f"Trial {index} excluded - {reason}")

    for message in result.diagnostics:
        print(f"WARNING: {message}")
    print()


def plot_erps(
    result: ErpResult,
    out_dir: Optional[str] = None,
    show: bool = False
) -> List[plt.Figure]:
    """
    Plot non-target and target averages, one figure per channel

    A class without an average is left out of the plot and named in the title.

    Args:
        result: Pipeline output
        out_dir: Save each figure as PNG here if given
        show: Call plt.show() at the end

    Returns:
        List of created figures
    """
    figures = []
    available = [label for label in (TrialLabel.NON_TARGET, TrialLabel.TARGET) if result.has_average(label)]
    missing = [CLASS_NAMES[label] for label in CLASS_NAMES if label not in available]

    if out_dir:
        os.makedirs(out_dir, exist_ok=True)

    pre = -result.time_vector[0] if len(result.time_vector) else 0.0

    for ch, ch_label in enumerate(result.ch_labels):
        fig, ax = plt.subplots(figsize=(8, 5))
        fig.patch.set_facecolor('white')

        for label in available:
            ax.plot(result.time_vector, result.average(label)[:, ch],
                    color=CLASS_COLORS[label], linewidth=1.5, label=CLASS_NAMES[label])

        ax.axvline(0, color='k', linestyle='--', linewidth=1.2)
        if pre > 0:
            ax.axvline(-pre, color='k', linestyle=':', linewidth=1.0)
        ax.set_xlim(result.time_vector[0], result.time_vector[-1])

        title = f"ERP – {ch_label}"
        if missing:
            title += f" (no {', '.join(missing)} trials)"
        ax.set_title(title, fontsize=14)
        ax.set_xlabel('Time (s)')
        ax.set_ylabel('Amplitude (µV)')
        if available:
            ax.legend(loc='best')
        ax.grid(True)

        if out_dir:
            path = os.path.join(out_dir, f"erp_{ch:02d}_{ch_label}.png")
            fig.savefig(path, dpi=150, bbox_inches='tight')
            logging.info(f"Saved ERP plot: {path}")

        figures.append(fig)

    if show:
        plt.show()

    return figures


def convert_numpy_types(obj):
    """Make numpy containers JSON-serializable"""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, dict):
        return {key: convert_numpy_types(value) for key, value in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_numpy_types(item) for item in obj]
    else:
        return obj


def save_metadata(meta: Dict[str, Any], out_path: str) -> None:
    """
    Save analysis metadata to a JSON file

    Args:
        meta: Dictionary containing metadata to save
        out_path: Path to save JSON file
    """
    logging.info(f"Saving metadata to: {out_path}")

    directory = os.path.dirname(out_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(out_path, 'w') as f:
        json.dump(convert_numpy_types(meta), f, indent=2, sort_keys=True)


def build_metadata(result: ErpResult, config=None) -> Dict[str, Any]:
    """
    Collect everything needed to interpret a saved result

    The .npz archive holds the arrays; this dictionary holds the bookkeeping
    that explains them: the trial log with every exclusion reason, which
    class averages exist (an empty class is stored as a zero-size array),
    the diagnostics raised during the run and, if given, the full
    configuration so the run can be repeated.

    Args:
        result: Pipeline output
        config: Configuration used for the run (optional)

    Returns:
        JSON-ready dictionary (after convert_numpy_types)
    """
    log = result.trial_log
    meta = {
        'fs': result.fs,
        'ch_labels': result.ch_labels,
        'epoch_length': len(result.time_vector),
        'trials': {
            'n_detected': log.n_detected,
            'n_glitches': log.n_glitches,
            'n_included': log.n_included,
            'n_excluded': log.n_excluded,
            'n_target': log.n_target,
            'n_non_target': log.n_non_target,
            'included_indices': log.included_indices,
            'excluded': [{'index': index, 'reason': reason} for index, reason in log.excluded],
        },
        'has_target_average': result.has_average(TrialLabel.TARGET),
        'has_non_target_average': result.has_average(TrialLabel.NON_TARGET),
        'diagnostics': result.diagnostics,
    }
    if config is not None:
        meta['config'] = config.to_dict()
    return meta


def save_results(
    result: ErpResult,
    out_npz: str,
    out_meta: Optional[str] = None,
    config=None
) -> None:
    """
    Save averages, epochs and trial log

    Archive contents:
    - mean_target, mean_non_target: [epoch_length x channels]
    - time_vector: seconds relative to onset
    - ch_labels
    - target_epochs, non_target_epochs: [n_trials x epoch_length x channels]
    - included_indices, excluded_indices, excluded_reasons

    Empty class averages are stored as zero-size arrays; the metadata records
    which averages exist.

    Args:
        result: Pipeline output
        out_npz: Path of the NumPy archive
        out_meta: Path of the JSON metadata (skipped if None)
        config: Configuration to include in the metadata
    """
    directory = os.path.dirname(out_npz)
    if directory:
        os.makedirs(directory, exist_ok=True)

    def _array(value):
        return np.empty((0, len(result.ch_labels))) if value is None else value

    log = result.trial_log
    np.savez(
        out_npz,
        mean_target=_array(result.target_average),
        mean_non_target=_array(result.non_target_average),
        time_vector=result.time_vector,
        ch_labels=np.array(result.ch_labels),
        target_epochs=_array(result.target_epochs),
        non_target_epochs=_array(result.non_target_epochs),
        included_indices=np.array(log.included_indices, dtype=int),
        excluded_indices=np.array([index for index, _ in log.excluded], dtype=int),
        excluded_reasons=np.array([reason for _, reason in log.excluded], dtype=str),
    )
    logging.info(f"Saved ERP results: {out_npz}")

    if out_meta:
        save_metadata(build_metadata(result, config), out_meta)


def to_evoked(result: ErpResult, label: TrialLabel) -> Optional[mne.EvokedArray]:
    """
    Wrap one class average as an MNE evoked object

    This hands the averages to MNE for topographies, peak finding and
    comparison across sessions. nave is the number of averaged trials, which
    MNE uses for noise estimates.

    Args:
        result: Pipeline output
        label: TARGET or NON_TARGET

    Returns:
        EvokedArray in volts, or None if the class has no average
    """
    average = result.average(label)
    if average is None:
        return None

    nave = result.trial_log.n_target if label is TrialLabel.TARGET else result.trial_log.n_non_target
    info = mne.create_info(ch_names=list(result.ch_labels), sfreq=result.fs, ch_types='eeg')

    # Averages are in µV, MNE expects V with shape [channels x times]
    return mne.EvokedArray(
        average.T * 1e-6,
        info,
        tmin=float(result.time_vector[0]),
        nave=max(nave, 1),
        comment=CLASS_NAMES[label],
    )


def save_evoked(result: ErpResult, out_path: str) -> List[mne.EvokedArray]:
    """
    Write the available class averages to one -ave.fif file

    Classes without an average are left out. Nothing is written when
    neither class has one.

    Returns:
        List of the evoked objects written
    """
    evokeds = [
        evoked for evoked in (to_evoked(result, TrialLabel.NON_TARGET), to_evoked(result, TrialLabel.TARGET))
        if evoked is not None
    ]
    if not evokeds:
        logging.warning("No class averages to save as evoked data")
        return evokeds

    directory = os.path.dirname(out_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    mne.write_evokeds(out_path, evokeds, overwrite=True)
    logging.info(f"Saved evoked responses: {out_path}")
    return evokeds
