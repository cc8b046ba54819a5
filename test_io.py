"""
Tests for data loading and configuration validation
"""

import numpy as np
import pytest

from erp_analysis.config import Config, tolerance_bands_overlap, validate_config
from erp_analysis.data_io import (
    EXG_CHANNELS, OPENBCI_COLUMNS, SampleTableSchema, load_csv, load_openbci_txt, validate_sample_table
)
from erp_analysis.exceptions import ConfigurationError, MalformedInputError, ToleranceOverlapWarning
from erp_analysis.fake_data import synthesize_erp_session

HEADER_NAMES = (
    ["Sample Index"]
    + [f"EXG Channel {i}" for i in range(8)]
    + [f"Accel Channel {i}" for i in range(3)]
    + ["Other", "Other", "Other", "Other", "Other", "Other", "Other"]
    + ["Analog Channel 0", "Analog Channel 1", "Analog Channel 2"]
    + ["Timestamp", "Marker", "Timestamp (Formatted)"]
)


def _openbci_row(index, digital=255, analog=900):
    values = [str(index % 256)]
    values += [f"{-1000.0 + index:.2f}"] * 8
    values += ["0.000"] * 3
    values += ["0", "0", "0", "0", str(digital), "0", "0"]
    values += [str(analog), "0", "0"]
    values += [f"{1749638255.0 + index / 250.0:.3f}", "0.0", "2025-06-11 10:37:35.000"]
    return ", ".join(values)


def _write_openbci(path, n_rows=50, header_names=HEADER_NAMES, sample_rate="250 Hz"):
    lines = [
        "%OpenBCI Raw EXG Data",
        "%Number of channels = 8",
        f"%Sample Rate = {sample_rate}",
        "%Board = OpenBCI_GUI$BoardCytonSerial",
        ", ".join(header_names),
    ]
    lines += [_openbci_row(i, digital=127 if 10 <= i < 20 else 255) for i in range(n_rows)]
    path.write_text("\n".join(lines) + "\n")
    return str(path)


def test_header_names_match_column_count():
    assert len(HEADER_NAMES) == len(OPENBCI_COLUMNS) == 25


def test_load_openbci_txt(tmp_path):
    path = _write_openbci(tmp_path / "OpenBCI-RAW.txt")
    table = load_openbci_txt(path)

    assert table.fs == 250.0
    assert table.n_samples == 50
    assert list(table.data.columns) == OPENBCI_COLUMNS
    assert table.data['digital_d17'].iloc[15] == 127
    assert table.data['analog_0'].iloc[0] == 900
    np.testing.assert_allclose(table.data['exg_3'].iloc[:3], [-1000.0, -999.0, -998.0])

    validate_sample_table(table, SampleTableSchema(), 'digital')


def test_load_openbci_txt_sample_rate_override(tmp_path):
    path = _write_openbci(tmp_path / "OpenBCI-RAW.txt", sample_rate="200 Hz")
    assert load_openbci_txt(path).fs == 200.0
    assert load_openbci_txt(path, fs=250.0).fs == 250.0


def test_load_openbci_txt_wrong_layout(tmp_path):
    path = _write_openbci(tmp_path / "short.txt", header_names=HEADER_NAMES[:-1])
    with pytest.raises(MalformedInputError):
        load_openbci_txt(path)


def test_missing_files(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_openbci_txt(str(tmp_path / "missing.txt"))
    with pytest.raises(FileNotFoundError):
        load_csv(str(tmp_path / "missing.csv"), fs=250.0)


def test_load_csv_round_trip(tmp_path):
    table, _ = synthesize_erp_session(n_target=2, n_non_target=4, seed=1)
    path = tmp_path / "session.csv"
    table.data.to_csv(path, index=False)

    loaded = load_csv(str(path), fs=250.0)
    assert loaded.n_samples == table.n_samples
    validate_sample_table(loaded, SampleTableSchema(), 'digital')
    np.testing.assert_allclose(loaded.data[EXG_CHANNELS].to_numpy(), table.data[EXG_CHANNELS].to_numpy())


def test_validate_empty_table():
    table, _ = synthesize_erp_session(n_target=1, n_non_target=1)
    table.data = table.data.iloc[:0]
    with pytest.raises(MalformedInputError):
        validate_sample_table(table, SampleTableSchema(), 'digital')


def test_validate_bad_sample_rate():
    table, _ = synthesize_erp_session(n_target=1, n_non_target=1)
    table.fs = 0
    with pytest.raises(MalformedInputError):
        validate_sample_table(table, SampleTableSchema(), 'digital')


# Configuration

def test_default_config_is_valid():
    config = Config()
    validate_config(config, n_channels=8)

    assert config.samples_pre == 50
    assert config.samples_post == 200
    assert config.epoch_length == 250
    assert len(config.time_vector()) == 250
    assert config.time_vector()[0] == pytest.approx(-0.2)
    assert not tolerance_bands_overlap(config)


@pytest.mark.parametrize("overrides", [
    dict(fs=0.0),
    dict(bp_low=0.0),
    dict(bp_low=30.0, bp_high=0.5),
    dict(bp_high=125.0),
    dict(notch_half_width=0.0),
    dict(notch_hz=124.5),
    dict(polarity=0),
    dict(pre_stim=-0.1),
    dict(post_stim=0.0),
    dict(trigger_mode='analog'),
    dict(trigger_bit=40),
    dict(min_pulse_width=-1),
    dict(short_width=0),
    dict(long_tol=-1),
])
def test_invalid_config(overrides):
    with pytest.raises(ConfigurationError):
        validate_config(Config(**overrides))


def test_channel_label_count_checked():
    with pytest.raises(ConfigurationError):
        validate_config(Config(ch_labels=['Fz', 'Cz']), n_channels=8)


def test_overlapping_bands_warn():
    config = Config(short_width=45, short_tol=50, long_width=135, long_tol=50)
    assert tolerance_bands_overlap(config)
    with pytest.warns(ToleranceOverlapWarning):
        validate_config(config)


def test_config_to_dict():
    meta = Config().to_dict()
    assert meta['trigger_mode'] == 'digital'
    assert meta['ch_labels'][0] == 'AFz'
