"""
End-to-end ERP pipeline

Wires the stages together:
sample table -> conditioning -> event detection -> classification ->
epoch averaging -> ErpResult.

All validation happens before any computation, so a run either fails
immediately or produces a complete result.
"""

import logging
import warnings
from dataclasses import replace
from typing import Optional


from .classification import classify_events
from .config import Config, validate_config
from .data_io import SampleTableSchema, validate_sample_table
from .data_types import ErpResult, SampleTable, TrialLabel, TrialLog
from .epoching import average_epochs
from .events import detect_events
from .exceptions import EmptyResultWarning
from .preprocessing import condition_signal


def _report_empty(result: ErpResult) -> None:
    messages = []
    if result.trial_log.n_detected == 0:
        messages.append("No stimulus events detected - check the trigger channel and mode.")

    for label, name in ((TrialLabel.NON_TARGET, "non-target"), (TrialLabel.TARGET, "target")):
        if not result.has_average(label):
            messages.append(f"No {name} epochs collected - {name} average is undefined. Adjust pulse settings.")

    for message in messages:
        logging.warning(message)
        warnings.warn(message, EmptyResultWarning, stacklevel=3)

    result.diagnostics.extend(messages)


def run_erp_pipeline(
    table: SampleTable,
    config: Optional[Config] = None,
    schema: Optional[SampleTableSchema] = None,
    n_jobs: int = 1
) -> ErpResult:
    """
    Compute target and non-target ERPs for one session

    The configuration and the table are both validated before any filtering,
    so a run either fails straight away or produces a complete result. When
    the table's sampling rate differs from config.fs, the table wins: the run
    uses a copy of the configuration with the table's rate, and the caller's
    Config is left as it was. Conditioning runs on the neural channels only;
    detection reads the raw auxiliary column, which must not be filtered.

    Empty classes are not errors. Their average is None, and the reason is
    logged, emitted as EmptyResultWarning and listed in result.diagnostics.

    Args:
        table: Recorded session
        config: Analysis parameters (defaults if None)
        schema: Column names to read (OpenBCI canonical names if None)
        n_jobs: Workers for epoch averaging

    Returns:
        ErpResult with both class averages (None for an empty class)

    Raises:
        ConfigurationError: If parameters are invalid
        MalformedInputError: If the table breaks the column contract
    """
    config = config if config is not None else Config()
    schema = schema if schema is not None else SampleTableSchema()

    if table.fs is not None and table.fs != config.fs:
        logging.warning(f"Data sampling rate ({table.fs}) differs from config ({config.fs}), using data rate")
        config = replace(config, fs=table.fs)

    validate_config(config, n_channels=len(schema.ch_names))
    validate_sample_table(table, schema, config.trigger_mode)

    geometry = config.geometry
    n_samples = table.n_samples

    # 1. Conditioning
    raw = table.data[schema.ch_names].to_numpy(dtype=float)
    conditioned = condition_signal(
        raw,
        fs=config.fs,
        notch_hz=config.notch_hz,
        notch_half_width=config.notch_half_width,
        bp_low=config.bp_low,
        bp_high=config.bp_high,
        polarity=config.polarity,
        notch_order=config.notch_order,
        bp_order=config.bp_order
    )

    # 2. Detection on the raw auxiliary channel
    aux = table.data[schema.aux_col(config.trigger_mode)].to_numpy()
    events, n_glitches = detect_events(aux, config)

    # 3. Classification
    classified = classify_events(
        events,
        geometry,
        n_samples,
        short_width=config.short_width,
        short_tol=config.short_tol,
        long_width=config.long_width,
        long_tol=config.long_tol
    )
    trial_log = TrialLog.from_classified(classified, n_glitches=n_glitches)

    # 4. Averaging
    accumulators = average_epochs(
        conditioned,
        classified,
        geometry,
        baseline=config.baseline_correct,
        n_jobs=n_jobs,
        keep_epochs=config.keep_epochs
    )

    result = ErpResult(
        target_average=accumulators[TrialLabel.TARGET].mean(),
        non_target_average=accumulators[TrialLabel.NON_TARGET].mean(),
        time_vector=geometry.time_vector(config.fs),
        ch_labels=list(config.ch_labels),
        trial_log=trial_log,
        fs=config.fs,
        target_epochs=accumulators[TrialLabel.TARGET].stacked(),
        non_target_epochs=accumulators[TrialLabel.NON_TARGET].stacked(),
    )

    _report_empty(result)

    logging.info(
        f"ERP pipeline complete: {trial_log.n_detected} events, "
        f"{trial_log.n_included} included, {trial_log.n_excluded} excluded"
    )
    return result
