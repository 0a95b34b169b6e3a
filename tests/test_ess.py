"""
Tests für ESS-Generator und Anregungssignale.

Prüft Sweep-Parameter, Fades und die Rekonstruktion eines
Impulses durch Faltung mit dem inversen Filter.
"""

import logging

import pytest
import numpy as np
from scipy import signal

from nss_analyzer.core.ess import (
    frequency_at_time,
    generate_ess,
    generate_pink_noise,
    time_at_frequency,
)


class TestGenerateESS:
    """Tests für generate_ess."""

    def test_length_and_metadata(self):
        ess = generate_ess(sample_rate=48000, duration=1.0, f1=20, f2=20000)

        assert len(ess.sweep) == 48000
        assert len(ess.inverse) == 48000
        assert ess.metadata.length == 48000
        assert ess.metadata.K == pytest.approx(1.0 / np.log(1000))
        assert ess.metadata.sample_rate == 48000

    def test_defaults(self):
        """Standardparameter: 48 kHz, 10 s, 20-20000 Hz, Amplitude 0.5."""
        ess = generate_ess()
        meta = ess.metadata

        assert meta.sample_rate == 48000
        assert meta.duration == 10.0
        assert (meta.f1, meta.f2) == (20.0, 20000.0)
        assert meta.amplitude == 0.5
        assert meta.fade_in == meta.fade_out == 0.1

    def test_amplitude_bound(self):
        ess = generate_ess(sample_rate=48000, duration=0.5, amplitude=0.3)
        assert np.max(np.abs(ess.sweep)) <= 0.3 + 1e-12

    def test_fades(self):
        """Erstes und letztes Sample sind durch die Fades null."""
        ess = generate_ess(sample_rate=48000, duration=0.5)

        assert ess.sweep[0] == pytest.approx(0.0)
        assert ess.sweep[-1] == pytest.approx(0.0, abs=1e-6)
        assert ess.inverse[0] == pytest.approx(0.0)
        assert ess.inverse[-1] == pytest.approx(0.0, abs=1e-6)

    def test_buffers_read_only(self):
        ess = generate_ess(sample_rate=8000, duration=0.2, f2=4000)
        with pytest.raises(ValueError):
            ess.sweep[0] = 1.0
        with pytest.raises(ValueError):
            ess.inverse[0] = 1.0

    @pytest.mark.parametrize("kwargs", [
        {"f1": 0},
        {"f1": 1000, "f2": 500},
        {"f1": 100, "f2": 100},
        {"duration": 0},
        {"sample_rate": 0},
    ])
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            generate_ess(**kwargs)

    def test_nyquist_warning(self, caplog):
        """f2 oberhalb Nyquist wird protokolliert, nicht abgelehnt."""
        with caplog.at_level(logging.WARNING, logger="nss_analyzer.core.ess"):
            ess = generate_ess(sample_rate=16000, duration=0.2, f2=20000)

        assert len(ess.sweep) == 3200
        assert "Nyquist" in caplog.text

    def test_deconvolution_yields_impulse(self):
        """Sweep * inverses Filter ergibt einen Impuls bei L-1."""
        sr = 48000
        ess = generate_ess(sample_rate=sr, duration=1.0)
        length = ess.metadata.length

        response = signal.fftconvolve(ess.sweep, ess.inverse)
        peak = int(np.argmax(np.abs(response)))

        assert abs(peak - (length - 1)) <= 1

        # Energie abseits des Peaks liegt deutlich darunter
        guard = int(0.0025 * sr)
        outside = np.concatenate((response[:peak - guard], response[peak + guard:]))
        ratio_db = 20 * np.log10(np.max(np.abs(outside)) / np.abs(response[peak]))
        assert ratio_db < -20

    def test_delayed_system_recovered(self):
        """Verzögerung des Systems erscheint als Verschiebung des Impulses."""
        sr = 48000
        delay = 240  # 5 ms
        ess = generate_ess(sample_rate=sr, duration=1.0)

        recorded = np.concatenate((np.zeros(delay), 0.5 * ess.sweep))
        response = signal.fftconvolve(recorded, ess.inverse)
        peak = int(np.argmax(np.abs(response)))

        assert abs(peak - (ess.metadata.length - 1 + delay)) <= 1


class TestSweepTiming:
    """Tests für Frequenz/Zeit-Zuordnung des Sweeps."""

    def test_frequency_at_start_and_end(self):
        K = 1.0 / np.log(1000)
        assert frequency_at_time(0.0, 20.0, K) == pytest.approx(20.0)
        assert frequency_at_time(1.0, 20.0, K) == pytest.approx(20000.0)

    def test_time_at_frequency_inverse(self):
        K = 2.0 / np.log(1000)
        t = time_at_frequency(1000.0, 20.0, K)
        assert frequency_at_time(t, 20.0, K) == pytest.approx(1000.0)


class TestPinkNoise:
    """Tests für den Rosa-Rauschen-Generator."""

    def test_length_and_seed(self):
        a = generate_pink_noise(sample_rate=8000, duration=0.5, seed=42)
        b = generate_pink_noise(sample_rate=8000, duration=0.5, seed=42)

        assert len(a) == 4000
        np.testing.assert_array_equal(a, b)

    def test_spectrum_falls_with_frequency(self):
        """Tiefe Frequenzen tragen mehr Energie als hohe."""
        sr = 48000
        noise = generate_pink_noise(sample_rate=sr, duration=2.0, seed=1)
        freqs, psd = signal.welch(noise, fs=sr, nperseg=4096)

        low = np.mean(psd[(freqs > 100) & (freqs < 200)])
        high = np.mean(psd[(freqs > 5000) & (freqs < 10000)])
        assert low > high

    def test_zero_duration(self):
        assert len(generate_pink_noise(duration=0.0)) == 0

    def test_negative_duration(self):
        with pytest.raises(ValueError):
            generate_pink_noise(duration=-1.0)
