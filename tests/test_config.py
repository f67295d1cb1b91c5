import math
import dataclasses

import numpy as np
import pytest

from landmark.config import build_config, decay_mask, hann_window, is_power_of_two


class TestBuildConfig:
    def test_defaults(self):
        config = build_config()
        assert config.sampling_rate == 22050
        assert config.nfft == 512
        assert config.step == 256
        assert config.dt == pytest.approx(256 / 22050)
        assert (config.if_min, config.if_max) == (0, 256)
        assert (config.mnlm, config.mppp) == (5, 3)
        assert (config.window_df, config.window_dt, config.pruning_dt) == (60, 96, 24)
        assert config.mask_decay_log == pytest.approx(math.log(0.995))
        assert config.max_history == 121

    def test_derived_values_follow_nfft(self):
        config = build_config(nfft=1024)
        assert config.step == 512
        assert config.if_max == 512
        assert config.hwin.shape == (1024,)
        assert config.eww.shape == (512, 512)

    @pytest.mark.parametrize("nfft", [0, 3, 500, 513, -512])
    def test_rejects_nfft_not_power_of_two(self, nfft):
        with pytest.raises(ValueError, match="power of 2"):
            build_config(nfft=nfft)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"step": 0},
            {"step": 1024},
            {"bps": 3},
            {"if_min": 100, "if_max": 50},
            {"if_min": 10, "if_max": 12},
            {"if_max": 300},
            {"mnlm": 0},
            {"pruning_dt": -1},
            {"mask_decay_log": 0.1},
            {"hwin": [1.0] * 10},
            {"keep_buffer_bytes": 100},
            {"keep_buffer_bytes": 2000000},
        ],
    )
    def test_rejects_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            build_config(**overrides)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"step": 100.5},
            {"window_dt": 2.5},
            {"mnlm": 5.0},
            {"if_max": True},
            {"keep_buffer_bytes": "20000"},
        ],
    )
    def test_rejects_non_integer_counts(self, overrides):
        with pytest.raises(ValueError, match="must be an integer"):
            build_config(**overrides)

    def test_accepts_numpy_integers(self):
        config = build_config(step=np.int64(128), window_dt=np.int32(50))
        assert config.step == 128
        assert config.window_dt == 50

    def test_unknown_option(self):
        with pytest.raises(TypeError):
            build_config(window_size=512)

    def test_is_immutable(self):
        config = build_config()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.nfft = 1024
        with pytest.raises(ValueError):
            config.hwin[0] = 1.0

    def test_explicit_window_is_used(self):
        hwin = np.ones(512)
        config = build_config(hwin=hwin)
        np.testing.assert_array_equal(config.hwin, hwin)

    def test_summary_has_scalars_only(self):
        summary = build_config().summary()
        assert "hwin" not in summary and "eww" not in summary
        assert summary["nfft"] == 512


class TestSharedTables:
    def test_tables_are_shared_between_configs(self):
        assert build_config().hwin is build_config().hwin
        assert build_config().eww is build_config().eww

    def test_hann_window_is_symmetric(self):
        hwin = hann_window(512)
        assert hwin[0] == pytest.approx(0.0)
        assert hwin[-1] == pytest.approx(0.0)
        np.testing.assert_allclose(hwin, hwin[::-1])
        expected = 0.5 * (1 - np.cos(2 * np.pi * np.arange(512) / 511))
        np.testing.assert_allclose(hwin, expected, atol=1e-12)

    def test_decay_mask_is_wider_at_higher_bins(self):
        eww = decay_mask(512, 3)
        np.testing.assert_array_equal(np.diag(eww), 0.0)
        assert (eww <= 0).all()
        # same distance, higher peak bin -> less decay
        assert eww[200, 210] > eww[10, 20]
        assert eww[10, 13] == pytest.approx(-0.5 * (3 / 3 / math.sqrt(13)) ** 2)


def test_is_power_of_two():
    assert is_power_of_two(1)
    assert is_power_of_two(512)
    assert not is_power_of_two(0)
    assert not is_power_of_two(768)
    assert not is_power_of_two(512.0)
