"""
End-to-end tests for the ERP pipeline
"""

import numpy as np
import pandas as pd
import pytest

from erp_analysis.config import Config
from erp_analysis.data_io import EXG_CHANNELS, SampleTableSchema, table_from_arrays
from erp_analysis.data_types import SampleTable, TrialLabel
from erp_analysis.epoching import baseline_correct
from erp_analysis.exceptions import (
    ConfigurationError, EmptyResultWarning, MalformedInputError, ToleranceOverlapWarning
)
from erp_analysis.fake_data import synthesize_erp_session
from erp_analysis.pipeline import run_erp_pipeline
from erp_analysis.preprocessing import condition_signal

FS = 250.0
N = int(10 * FS)


def make_session(spans, eeg=None, n=N):
    """10 s, 8-channel session with flashes at the given (onset, width) spans"""
    if eeg is None:
        eeg = np.zeros((n, len(EXG_CHANNELS)))

    digital = np.full(n, 0xFF, dtype=np.int64)
    analog = np.full(n, 900.0)
    for onset, width in spans:
        digital[onset:onset + width] = 0x7F
        analog[onset:onset + width] = 200.0

    columns = {name: eeg[:, i] for i, name in enumerate(EXG_CHANNELS)}
    columns.update({
        'digital_d17': digital,
        'analog_0': analog,
        'timestamp': np.arange(n) / FS,
    })
    return table_from_arrays(columns, fs=FS)


def run(table, config=None, schema=None, n_jobs=1):
    return run_erp_pipeline(table, config if config is not None else Config(), schema=schema, n_jobs=n_jobs)


def test_zero_recording_two_classes():
    table = make_session([(500, 45), (1250, 135)])
    result = run(table)

    log = result.trial_log
    assert log.n_detected == 2
    assert log.n_excluded == 0
    assert log.n_non_target == 1
    assert log.n_target == 1

    assert result.non_target_average.shape == (250, 8)
    assert result.target_average.shape == (250, 8)
    assert np.all(result.non_target_average == 0)
    assert np.all(result.target_average == 0)
    assert result.diagnostics == []


def test_averages_equal_single_trial_epochs():
    eeg = np.random.RandomState(0).randn(N, 8) * 20
    table = make_session([(500, 45), (1250, 135)], eeg=eeg)
    result = run(table)

    conditioned = condition_signal(eeg, FS)
    expected_nt = baseline_correct(conditioned[450:700], 50)
    expected_t = baseline_correct(conditioned[1200:1450], 50)

    np.testing.assert_allclose(result.non_target_average, expected_nt)
    np.testing.assert_allclose(result.target_average, expected_t)
    np.testing.assert_allclose(result.time_vector, np.arange(-50, 200) / FS)
    assert result.ch_labels == ['AFz', 'Fz', 'Cz', 'CP2', 'Pz', 'P3', 'P4', 'O1']


def test_unrecognized_duration_excluded():
    table = make_session([(500, 45), (1250, 80)])

    with pytest.warns(EmptyResultWarning):
        result = run(table)

    log = result.trial_log
    assert log.n_detected == 2
    assert log.excluded == [(1, "unrecognized pulse duration: 79 samples")]
    assert log.n_target == 0
    assert result.target_average is None
    assert not result.has_average(TrialLabel.TARGET)
    assert result.has_average(TrialLabel.NON_TARGET)
    assert any("No target epochs" in message for message in result.diagnostics)
    assert result.target_epochs.shape == (0, 250, 8)


def test_out_of_bounds_events():
    table = make_session([(20, 45), (1000, 135), (N - 100, 45)])

    with pytest.warns(EmptyResultWarning):
        result = run(table)

    assert result.trial_log.excluded == [(0, "out-of-bounds epoch"), (2, "out-of-bounds epoch")]
    assert result.trial_log.n_target == 1
    assert result.non_target_average is None


def test_no_events_is_not_an_error():
    table = make_session([])

    with pytest.warns(EmptyResultWarning):
        result = run(table)

    assert result.trial_log.n_detected == 0
    assert result.target_average is None
    assert result.non_target_average is None
    assert any("No stimulus events" in message for message in result.diagnostics)


def test_glitches_dropped_silently():
    table = make_session([(500, 45), (800, 5), (1250, 135), (1600, 29)])
    result = run(table)

    log = result.trial_log
    assert log.n_detected == 2
    assert log.n_glitches == 2
    assert log.n_excluded == 0


def test_digital_widths_at_band_edges():
    # 56 and 146 low samples measure 55 and 145, the outer edges of the bands
    table = make_session([(500, 56), (1250, 146), (2000, 30)])
    result = run(table)

    log = result.trial_log
    assert log.n_detected == 2
    assert log.n_glitches == 1
    assert log.n_non_target == 1
    assert log.n_target == 1


@pytest.mark.parametrize("column", ['digital_d17', 'exg_2', 'timestamp'])
def test_non_finite_values_rejected(column):
    table = make_session([(900, 45), (1500, 135)])
    table.data[column] = table.data[column].astype(float)
    table.data.loc[100:139, column] = np.nan
    with pytest.raises(MalformedInputError):
        run(table)


def test_infinite_photodiode_value_rejected():
    table = make_session([(900, 45), (1500, 135)])
    table.data.loc[300, 'analog_0'] = np.inf
    with pytest.raises(MalformedInputError):
        run(table, Config(trigger_mode='threshold'))


def test_sample_rate_mismatch_leaves_config_untouched():
    table = make_session([(500, 45), (1250, 135)])
    config = Config(fs=500.0)
    result = run(table, config)

    assert config.fs == 500.0
    assert result.fs == FS
    assert result.target_average.shape == (250, 8)


def test_threshold_mode():
    table = make_session([(500, 32), (1250, 128)])
    config = Config(trigger_mode='threshold', short_width=32, short_tol=5, long_width=128, long_tol=10)
    result = run(table, config)

    assert result.trial_log.n_non_target == 1
    assert result.trial_log.n_target == 1


def test_zero_pre_window_baseline_is_noop():
    eeg = np.random.RandomState(4).randn(N, 8) * 20
    table = make_session([(500, 45), (1250, 135)], eeg=eeg)

    config = Config(pre_stim=0.0, baseline_correct=True)
    result = run(table, config)

    conditioned = condition_signal(eeg, FS)
    assert result.target_average.shape == (200, 8)
    np.testing.assert_allclose(result.target_average, conditioned[1250:1450])


def test_parallel_pipeline_matches_serial():
    table, _ = synthesize_erp_session(n_target=6, n_non_target=18, seed=3)
    serial = run(table)
    parallel = run(table, n_jobs=3)

    np.testing.assert_allclose(parallel.target_average, serial.target_average)
    np.testing.assert_allclose(parallel.non_target_average, serial.non_target_average)


def test_synthetic_session_recovers_p300():
    table, truth = synthesize_erp_session(n_target=12, n_non_target=36, n_glitches=4, seed=11)
    result = run(table)

    log = result.trial_log
    assert log.n_detected == 48
    assert log.n_glitches == 4
    assert log.n_target == 12
    assert log.n_non_target == 36
    assert log.n_excluded == 0

    expected_labels = [label for _, label in truth]
    actual_labels = [item.label for item in log.events]
    assert actual_labels == expected_labels

    # P300 at ~300 ms on the last (parietal-weighted) channel
    peak = np.argmin(np.abs(result.time_vector - 0.3))
    assert result.target_average[peak, 7] > result.non_target_average[peak, 7] + 3.0


def test_missing_column():
    table = make_session([(500, 45)])
    table.data = table.data.drop(columns=['exg_3'])
    with pytest.raises(MalformedInputError):
        run(table)


def test_missing_aux_column_only_for_selected_mode():
    table = make_session([(500, 45), (1250, 135)])
    table.data = table.data.drop(columns=['analog_0'])

    run(table)  # digital mode does not need the photodiode
    with pytest.raises(MalformedInputError):
        run(table, Config(trigger_mode='threshold'))


def test_non_monotonic_index():
    table = make_session([(500, 45)])
    table.data.loc[100, 'timestamp'] = -1.0
    with pytest.raises(MalformedInputError):
        run(table)


def test_length_mismatch():
    with pytest.raises(MalformedInputError):
        table_from_arrays({'exg_0': np.zeros(10), 'exg_1': np.zeros(11)}, fs=FS)


def test_non_numeric_column():
    table = make_session([(500, 45)])
    table.data['exg_0'] = 'x'
    with pytest.raises(MalformedInputError):
        run(table)


def test_invalid_config_fails_before_processing():
    table = make_session([(500, 45)])
    with pytest.raises(ConfigurationError):
        run(table, Config(bp_low=40.0, bp_high=30.0))
    with pytest.raises(ConfigurationError):
        run(table, Config(post_stim=0.0))


def test_overlapping_bands_warn_and_prefer_short():
    table = make_session([(500, 90), (1250, 140)])
    config = Config(short_width=45, short_tol=50, long_width=135, long_tol=50)

    with pytest.warns(ToleranceOverlapWarning):
        result = run(table, config)

    assert [item.label for item in result.trial_log.events] == [TrialLabel.NON_TARGET, TrialLabel.TARGET]


def test_custom_schema():
    n = N
    frame = pd.DataFrame({
        'Fz': np.zeros(n),
        'Cz': np.zeros(n),
        'trigger': np.full(n, 0xFF, dtype=np.int64),
    })
    frame.loc[500:544, 'trigger'] = 0x7F
    table = SampleTable(data=frame, fs=FS)
    schema = SampleTableSchema(ch_names=['Fz', 'Cz'], digital_col='trigger', index_col=None)

    with pytest.warns(EmptyResultWarning):
        result = run(table, Config(ch_labels=['Fz', 'Cz']), schema=schema)

    assert result.non_target_average.shape == (250, 2)
    assert result.trial_log.n_non_target == 1

