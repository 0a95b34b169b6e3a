"""
Tests für den Export von Messergebnissen.
"""

import io
import json
import warnings

import pytest
import numpy as np
import soundfile as sf

from nss_analyzer.core.comb_filter import CombDetection
from nss_analyzer.core.delay_estimation import DelayEstimator
from nss_analyzer.core.ess import generate_ess
from nss_analyzer.core.export import ExportFormat, export_results
from nss_analyzer.core.measurement import (
    BroadbandReverberation,
    FrequencyResponse,
    ImpulseResponseData,
    MeasurementResults,
    ReverberationResult,
    validate_design,
)

SR = 48000


def make_results(comb=None, t30=0.6):
    ir = np.zeros(4800)
    ir[480] = 1.2   # Wird beim WAV-Export begrenzt
    ir[720] = 0.5

    delay = DelayEstimator().estimate_single(ir, SR)
    reverberation = ReverberationResult(
        broadband=BroadbandReverberation(edt=0.5, t20=None, t30=t30, confidence=0.9),
        bands={"1000": np.float32(0.55)},
    )

    return MeasurementResults(
        measurement_type="both",
        timestamp="2024-01-01T12:00:00+00:00",
        sample_rate=SR,
        impulse_response=ImpulseResponseData(impulse_response=ir, onset_time=0.01, duration=0.1),
        frequency_response=FrequencyResponse(
            frequencies=np.arange(4) * 100.0,
            magnitude=np.zeros(4),
            phase=np.zeros(4),
        ),
        reverberation=reverberation,
        delay=delay,
        comb_filtering=comb,
        validation=validate_design(reverberation, delay, comb),
        ess_parameters=generate_ess(sample_rate=8000, duration=0.2, f2=4000).metadata,
        measurement_duration=1.3,
        analysis_timestamp="2024-01-01T12:00:01+00:00",
    )


class TestJsonExport:
    """Tests für den JSON-Export."""

    def test_structure(self):
        data = json.loads(export_results(make_results(), "json"))

        assert data["success"] is True
        assert data["timestamp"] == "2024-01-01T12:00:00+00:00"
        assert len(data["impulse_response"]["data"]) == 4800
        assert data["reverberation"]["T20"] is None
        assert data["reverberation"]["bands"]["1000"] == pytest.approx(0.55)
        assert data["delay"]["primary_delay"] == pytest.approx(5.0, abs=0.05)
        assert len(data["delay"]["arrivals"]) == 2
        assert data["comb_filtering"] == {"detected": False, "confidence": 0.0}
        assert data["nss_validation"]["overall"] == "excellent"
        assert data["metadata"]["ess_parameters"]["sample_rate"] == 8000

    def test_indented(self):
        payload = export_results(make_results(), ExportFormat.JSON)
        assert payload.startswith(b"{\n  ")

    def test_comb_detection(self):
        comb = CombDetection(
            delay_ms=4.0,
            notch_spacing_hz=250.0,
            confidence=0.4,
            notches=(250.0, 500.0),
            timestamp=1.0,
        )
        data = json.loads(export_results(make_results(comb=comb), "json"))

        assert data["comb_filtering"] == {
            "detected": True,
            "delay": 4.0,
            "notch_spacing": 250.0,
            "confidence": 0.4,
            "notches": [250.0, 500.0],
        }


class TestCsvExport:
    """Tests für den CSV-Export."""

    def test_sections(self):
        lines = export_results(make_results(), "csv").decode("utf-8").splitlines()

        assert lines[0] == "NSS Measurement Results"
        assert lines[1] == "Timestamp,2024-01-01T12:00:00+00:00"
        assert "Reverberation Analysis" in lines
        assert "EDT (s),0.500" in lines
        assert "T20 (s),N/A" in lines
        assert "T30 (s),0.600" in lines
        assert "Primary Delay (ms),5.000" in lines
        assert "Detected,false" in lines
        assert "Notch Spacing (Hz),N/A" in lines
        assert lines[-1] == "Overall Assessment,excellent"

    def test_deterministic(self):
        results = make_results()
        assert export_results(results, "csv") == export_results(results, "csv")


class TestWavExport:
    """Tests für den WAV-Export der Impulsantwort."""

    def test_decodes(self):
        payload = export_results(make_results(), "wav")
        data, sample_rate = sf.read(io.BytesIO(payload), dtype="float64")

        assert payload[:4] == b"RIFF"
        assert sample_rate == SR
        assert len(data) == 4800
        assert int(np.argmax(data)) == 480
        assert data[720] == pytest.approx(0.5, abs=1e-4)

    def test_clamped_without_warning(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            payload = export_results(make_results(), "wav")

        data, _ = sf.read(io.BytesIO(payload), dtype="float64")
        assert np.max(data) <= 1.0


class TestUnsupportedFormat:
    """Tests für Fehlerbehandlung."""

    @pytest.mark.parametrize("fmt", ["xml", "mp3", ""])
    def test_unsupported(self, fmt):
        with pytest.raises(ValueError, match="Unsupported export format"):
            export_results(make_results(), fmt)
