"""
Tests für die Radix-2 FFT.
"""

import pytest
import numpy as np

from nss_analyzer.core.fft import FFT, is_power_of_two, next_power_of_two


class TestPowerOfTwo:
    """Tests für Zweierpotenz-Hilfsfunktionen."""

    @pytest.mark.parametrize("n", [1, 2, 4, 256, 4096])
    def test_is_power_of_two(self, n):
        assert is_power_of_two(n)

    @pytest.mark.parametrize("n", [0, 3, 6, 1000, -4])
    def test_is_not_power_of_two(self, n):
        assert not is_power_of_two(n)

    def test_next_power_of_two(self):
        assert next_power_of_two(0) == 1
        assert next_power_of_two(1) == 1
        assert next_power_of_two(5) == 8
        assert next_power_of_two(1024) == 1024
        assert next_power_of_two(1025) == 2048


class TestFFT:
    """Tests für Vorwärts- und Rücktransformation."""

    def test_invalid_size(self):
        """Nicht-Zweierpotenz wird abgelehnt."""
        with pytest.raises(ValueError, match="power of two"):
            FFT(1000)

    def test_size_attributes(self):
        fft = FFT(1024)
        assert fft.size == 1024
        assert fft.bits == 10

    @pytest.mark.parametrize("size", [2, 8, 64, 1024, 4096])
    def test_matches_numpy(self, size):
        """Ergebnis stimmt mit numpy.fft überein."""
        rng = np.random.default_rng(0)
        x = rng.standard_normal(size)

        re, im = FFT(size).forward(x)
        expected = np.fft.fft(x)

        np.testing.assert_allclose(re, expected.real, atol=1e-9 * size)
        np.testing.assert_allclose(im, expected.imag, atol=1e-9 * size)

    @pytest.mark.parametrize("size", [4, 128, 4096])
    def test_round_trip(self, size):
        """inverse(forward(x)) reproduziert x."""
        rng = np.random.default_rng(1)
        x = rng.standard_normal(size)
        fft = FFT(size)

        re, im = fft.forward(x)
        restored, imag = fft.inverse(re, im)

        np.testing.assert_allclose(restored, x, atol=1e-9)
        np.testing.assert_allclose(imag, 0.0, atol=1e-9)

    def test_impulse_is_flat(self):
        """Dirac-Impuls ergibt konstantes Betragsspektrum."""
        x = np.zeros(64)
        x[0] = 1.0
        np.testing.assert_allclose(FFT(64).magnitude(x), 1.0)

    def test_sine_peak_bin(self):
        """Sinus auf Bin 5 ergibt Peak N/2 bei Bin 5."""
        n = 256
        x = np.cos(2 * np.pi * 5 * np.arange(n) / n)
        magnitude = FFT(n).magnitude(x)

        assert np.argmax(magnitude[:n // 2]) == 5
        assert magnitude[5] == pytest.approx(n / 2)

    def test_inverse_without_imag(self):
        """Fehlender Imaginärteil wird als Null behandelt."""
        spectrum = np.ones(16)
        re, im = FFT(16).inverse(spectrum)

        assert re[0] == pytest.approx(1.0)
        np.testing.assert_allclose(re[1:], 0.0, atol=1e-12)
        np.testing.assert_allclose(im, 0.0, atol=1e-12)

    def test_wrong_length(self):
        """Falsche Eingangslänge wird abgelehnt."""
        fft = FFT(32)
        with pytest.raises(ValueError):
            fft.forward(np.zeros(31))
        with pytest.raises(ValueError):
            fft.inverse(np.zeros(32), np.zeros(16))

    def test_input_not_modified(self):
        x = np.arange(8, dtype=np.float64)
        original = x.copy()
        FFT(8).forward(x)
        np.testing.assert_array_equal(x, original)
