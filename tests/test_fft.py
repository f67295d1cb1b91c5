import numpy as np
import pytest

from landmark.fft import FFT


@pytest.mark.parametrize("n", [3, 100, 0, 511])
def test_rejects_sizes_not_power_of_two(n):
    with pytest.raises(ValueError):
        FFT(n)


@pytest.mark.parametrize("n", [2, 8, 64, 512, 2048])
def test_matches_numpy(n):
    rng = np.random.default_rng(n)
    real = rng.standard_normal(n)
    imag = rng.standard_normal(n)
    expected = np.fft.fft(real + 1j * imag)

    fft = FFT(n)
    spectrum = fft.forward(real, imag)

    np.testing.assert_allclose(real, expected.real, atol=1e-9)
    np.testing.assert_allclose(imag, expected.imag, atol=1e-9)
    np.testing.assert_allclose(spectrum, np.abs(expected[: n // 2]), atol=1e-9)
    assert fft.spectrum is spectrum


def test_impulse_has_flat_spectrum():
    fft = FFT(16)
    real = np.zeros(16)
    real[0] = 1.0
    spectrum = fft.forward(real, np.zeros(16))
    np.testing.assert_allclose(spectrum, np.ones(8))


def test_pure_tone_lands_in_its_bin():
    n = 512
    real = np.cos(2 * np.pi * 40 * np.arange(n) / n)
    spectrum = FFT(n).forward(real, np.zeros(n))
    assert int(np.argmax(spectrum)) == 40
    assert spectrum[40] == pytest.approx(n / 2)


def test_instances_reuse_tables():
    a, b = FFT(256), FFT(256)
    assert a.cos_table is b.cos_table
    assert a.reversed_indices is b.reversed_indices


def test_rejects_wrong_length():
    with pytest.raises(ValueError):
        FFT(8).forward(np.zeros(4), np.zeros(4))
