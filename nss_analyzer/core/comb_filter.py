"""
Comb-Filter Detection - cepstrum analysis of magnitude spectra.

A signal summed with a delayed copy of itself shows periodic notches in
its spectrum. The log-magnitude spectrum then contains a periodic
component whose period is the notch spacing; its Fourier transform
(the real cepstrum) peaks at the quefrency of the delay.

Pipeline per frame:
1) Restrict the spectrum to the analysis band, dB -> linear
2) Remove a weak linear tilt (power-weighted centroid/variance)
3) Level check (RMS of linear magnitudes)
4) Log magnitude -> FFT (zero-padded to a power of two) -> cepstrum
5) Peak search within the quefrency range of the configured delays
6) Peak height above the median cepstrum -> confidence
7) Temporal smoothing over a sliding history window (median)

Cepstral magnitudes are scaled to the peak-to-peak ripple (dB) of the
corresponding periodic spectral component, so the detection threshold
reads as a notch depth. A full-depth comb (two equal paths) gives about
17.4 dB.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, replace
from typing import Callable, Deque, Iterator, Optional

import numpy as np

from .fft import FFT, is_power_of_two, next_power_of_two
from .signal_processing import compute_rms, db_to_linear, parabolic_interpolation
from ..utils.formatting import format_db

logger = logging.getLogger(__name__)

SOUND_SPEED = 343.0  # m/s at 20 °C

# natural-log amplitude -> peak-to-peak dB
_NEPER_PP_TO_DB = 2 * 20 / np.log(10)


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass
class CombFilterConfig:
    """Configuration for the detector."""
    sample_rate: int = 44_100
    fft_size: int = 2048                  # Size of the transform that produced the spectrum
    min_freq: float = 200.0               # Analysis band in Hz
    max_freq: float = 8_000.0
    min_delay_ms: float = 0.2             # Delay search range in ms
    max_delay_ms: float = 20.0
    confidence_threshold_db: float = 8.0  # Minimum cepstral peak height
    confidence_scale_db: float = 20.0     # Peak height mapped to confidence 1.0
    detrend_weight: float = 0.1
    history_window_ms: float = 1000.0     # Temporal smoothing window
    max_history: int = 1024

    def __post_init__(self):
        if self.sample_rate <= 0:
            raise ValueError("Sample rate must be positive")
        if not is_power_of_two(self.fft_size) or self.fft_size < 4:
            raise ValueError(f"FFT size must be a power of two >= 4, got: {self.fft_size}")
        if not 0 <= self.min_freq < self.max_freq:
            raise ValueError("Frequency band requires 0 <= min_freq < max_freq")
        if not 0 < self.min_delay_ms < self.max_delay_ms:
            raise ValueError("Delay range requires 0 < min_delay_ms < max_delay_ms")
        if self.history_window_ms <= 0:
            raise ValueError("History window must be positive")
        if self.confidence_scale_db <= 0:
            raise ValueError("Confidence scale must be positive")


@dataclass(frozen=True)
class CombDetection:
    """
    A comb-filter detection.

    For results returned by CombFilterDetector.detect, delay and
    confidence are medians over the history window and `frames` is the
    number of detections they are based on.
    """
    delay_ms: float               # tau
    notch_spacing_hz: float       # delta f = 1 / tau
    confidence: float             # 0..1
    notches: tuple[float, ...]    # Notch frequencies in Hz
    timestamp: float              # Seconds (detector clock)
    peak_height_db: float = 0.0
    frames: int = 1


class DetectionHistory:
    """
    Sliding window of recent detections.

    Entries whose age is >= the window are dropped by evict().
    """

    def __init__(self, window_ms: float = 1000.0, max_entries: int = 1024):
        self.window_s = window_ms / 1000.0
        self._entries: Deque[CombDetection] = deque(maxlen=max_entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CombDetection]:
        return iter(self._entries)

    def append(self, detection: CombDetection) -> None:
        self._entries.append(detection)

    def evict(self, now: float) -> int:
        """Drop entries older than the window. Returns the number dropped."""
        kept = [d for d in self._entries if now - d.timestamp < self.window_s]
        dropped = len(self._entries) - len(kept)
        if dropped:
            self._entries.clear()
            self._entries.extend(kept)
        return dropped

    def clear(self) -> None:
        self._entries.clear()

    @property
    def latest(self) -> Optional[CombDetection]:
        return self._entries[-1] if self._entries else None

    @staticmethod
    def _median(values: list[float]) -> float:
        # Upper median
        ordered = sorted(values)
        return ordered[len(ordered) // 2]

    def median_delay_ms(self) -> float:
        return self._median([d.delay_ms for d in self._entries])

    def median_confidence(self) -> float:
        return self._median([d.confidence for d in self._entries])


# ============================================================
# DETECTOR
# ============================================================

class CombFilterDetector:
    """
    Detects comb filtering in magnitude spectra.

    Usage:
        detector = CombFilterDetector(CombFilterConfig(sample_rate=48000))
        result = detector.detect(spectrum_db)   # len == fft_size / 2
        if result is not None:
            print(result.delay_ms, result.confidence)

    None means "no confident detection in the current window"; it is a
    valid outcome, not an error. The instance keeps a detection history
    and must not be shared between threads without locking.
    """

    def __init__(
        self,
        config: Optional[CombFilterConfig] = None,
        transform: Optional[FFT] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or CombFilterConfig()
        self._clock = clock
        self.history = DetectionHistory(self.config.history_window_ms, self.config.max_history)
        self.update_fft_size(self.config.fft_size, transform)

    def update_fft_size(self, fft_size: int, transform: Optional[FFT] = None) -> None:
        """
        Recompute bin and lag ranges for a new FFT size and reset history.

        Raises:
            ValueError: fft_size is not a power of two, the band holds too
                few bins, or `transform` has the wrong size
        """
        if fft_size != self.config.fft_size:
            self.config = replace(self.config, fft_size=fft_size)
        cfg = self.config

        self.fft_size = cfg.fft_size
        self.freq_per_bin = cfg.sample_rate / cfg.fft_size

        self.min_bin = max(1, int(np.floor(cfg.min_freq / self.freq_per_bin)))
        self.max_bin = min(cfg.fft_size // 2 - 1, int(np.ceil(cfg.max_freq / self.freq_per_bin)))
        self.num_bins = self.max_bin - self.min_bin + 1
        if self.num_bins < 4:
            raise ValueError(
                f"Analysis band {cfg.min_freq}-{cfg.max_freq} Hz covers only "
                f"{max(self.num_bins, 0)} bins at FFT size {cfg.fft_size}"
            )

        self.cepstrum_size = next_power_of_two(self.num_bins)
        if transform is not None and transform.size != self.cepstrum_size:
            raise ValueError(
                f"Transform size {transform.size} does not match cepstrum size {self.cepstrum_size}"
            )
        self.fft = transform or FFT(self.cepstrum_size)

        # Quefrency index q <-> delay: tau = q / (N_cep * bin width)
        self.lag_per_second = self.cepstrum_size * self.freq_per_bin
        self.min_lag = max(1, int(np.ceil(cfg.min_delay_ms * 1e-3 * self.lag_per_second)))
        self.max_lag = min(
            self.cepstrum_size // 2,
            int(np.floor(cfg.max_delay_ms * 1e-3 * self.lag_per_second)),
        )
        if self.min_lag > self.max_lag:
            raise ValueError(
                f"Delay range {cfg.min_delay_ms}-{cfg.max_delay_ms} ms is not resolvable "
                f"at FFT size {cfg.fft_size}"
            )

        self.history.clear()
        logger.debug(
            "Comb detector: bins %d-%d, cepstrum %d, lags %d-%d",
            self.min_bin, self.max_bin, self.cepstrum_size, self.min_lag, self.max_lag,
        )

    def reset(self) -> None:
        """Forget all previous detections."""
        self.history.clear()

    def detect(
        self,
        spectrum_db: np.ndarray,
        timestamp: Optional[float] = None,
    ) -> Optional[CombDetection]:
        """
        Analyse one spectrum frame and return the smoothed detection.

        Args:
            spectrum_db: Magnitude spectrum in dB, length fft_size / 2
            timestamp: Frame time in seconds (default: detector clock)

        Returns:
            Median delay/confidence over the history window, or None if
            the window holds no detections

        Raises:
            ValueError: Spectrum has the wrong length
        """
        spectrum_db = np.asarray(spectrum_db, dtype=np.float64)
        expected = self.fft_size // 2
        if spectrum_db.ndim != 1 or spectrum_db.shape[0] != expected:
            raise ValueError(
                f"Expected {expected} frequency bins, got {spectrum_db.shape[0] if spectrum_db.ndim else 0}"
            )

        now = self._clock() if timestamp is None else float(timestamp)
        detection = self.analyze_spectrum(spectrum_db, now)
        return self._update_history(detection, now)

    def analyze_spectrum(
        self,
        spectrum_db: np.ndarray,
        timestamp: float = 0.0,
    ) -> Optional[CombDetection]:
        """Single-frame analysis without history (None = no comb found)."""
        cfg = self.config

        band_db = spectrum_db[self.min_bin:self.max_bin + 1]
        magnitude = db_to_linear(band_db)
        freqs = (self.min_bin + np.arange(self.num_bins)) * self.freq_per_bin

        if compute_rms(magnitude) < 1e-6:
            logger.debug("Spectrum level too low for comb analysis")
            return None

        # Linear detrend around the power-weighted centroid
        total = np.sum(magnitude)
        center_freq = np.sum(freqs * magnitude) / total
        variance = max(1.0, np.sum(freqs ** 2 * magnitude) / total - center_freq ** 2)
        trend = (freqs - center_freq) / variance * cfg.detrend_weight
        magnitude = np.maximum(0.0, magnitude - trend)

        log_magnitude = np.log(magnitude + 1e-10)
        log_magnitude -= np.mean(log_magnitude)

        padded = np.zeros(self.cepstrum_size)
        padded[:self.num_bins] = log_magnitude
        re, im = self.fft.forward(padded)
        cepstrum = np.hypot(re, im) * (2.0 / self.num_bins) * _NEPER_PP_TO_DB

        search = cepstrum[self.min_lag:self.max_lag + 1]
        lag = self.min_lag + int(np.argmax(search))
        peak_value = float(cepstrum[lag])

        noise_floor = float(np.median(cepstrum[1:self.cepstrum_size // 2 + 1]))
        peak_height = peak_value - noise_floor

        if peak_height < cfg.confidence_threshold_db:
            logger.debug(
                "Cepstral peak %s below threshold %s",
                format_db(peak_height), format_db(cfg.confidence_threshold_db),
            )
            return None

        refined_lag = parabolic_interpolation(cepstrum, lag)
        delay_ms = 1000.0 * refined_lag / self.lag_per_second
        notch_spacing = 1000.0 / delay_ms

        multiples = np.arange(1, int(np.ceil(cfg.max_freq / notch_spacing)) + 1) * notch_spacing
        notches = multiples[(multiples >= cfg.min_freq) & (multiples < cfg.max_freq)]

        return CombDetection(
            delay_ms=delay_ms,
            notch_spacing_hz=notch_spacing,
            confidence=float(np.clip(peak_height / cfg.confidence_scale_db, 0.0, 1.0)),
            notches=tuple(float(f) for f in notches),
            timestamp=timestamp,
            peak_height_db=peak_height,
        )

    def _update_history(
        self,
        detection: Optional[CombDetection],
        now: float,
    ) -> Optional[CombDetection]:
        if detection is not None:
            self.history.append(detection)

        self.history.evict(now)
        latest = self.history.latest
        if latest is None:
            return None

        delay_ms = self.history.median_delay_ms()
        return CombDetection(
            delay_ms=delay_ms,
            notch_spacing_hz=1000.0 / delay_ms,
            confidence=self.history.median_confidence(),
            notches=latest.notches,
            timestamp=now,
            peak_height_db=latest.peak_height_db,
            frames=len(self.history),
        )


# ============================================================
# HELPER FUNCTIONS (COMB THEORY)
# ============================================================

def comb_magnitude_response(
    delay_s: float,
    frequencies: np.ndarray,
    gain: float = 1.0,
) -> np.ndarray:
    """|1 + g * exp(-j 2 pi f tau)| for a feedforward comb."""
    frequencies = np.asarray(frequencies, dtype=np.float64)
    return np.abs(1 + gain * np.exp(-2j * np.pi * frequencies * delay_s))


def comb_notch_frequencies(
    delay_s: float,
    max_freq: float = 20_000.0,
    min_freq: float = 0.0,
) -> np.ndarray:
    """Notches of a feedforward comb: (2n + 1) / (2 tau)."""
    if delay_s <= 0:
        return np.array([])
    count = int(np.floor(max_freq * delay_s - 0.5)) + 1
    notches = (2 * np.arange(max(count, 0)) + 1) / (2 * delay_s)
    return notches[(notches >= min_freq) & (notches <= max_freq)]


def comb_peak_frequencies(delay_s: float, max_freq: float = 20_000.0) -> np.ndarray:
    """Peaks of a feedforward comb: n / tau, including DC."""
    if delay_s <= 0:
        return np.array([0.0])
    return np.arange(int(np.floor(max_freq * delay_s)) + 1) / delay_s


def delay_to_distance(delay_s: float, speed_of_sound: float = SOUND_SPEED) -> float:
    """Path-length difference (m) for an arrival delay."""
    return delay_s * speed_of_sound


def distance_to_delay(distance_m: float, speed_of_sound: float = SOUND_SPEED) -> float:
    """Arrival delay (s) for a path-length difference."""
    return distance_m / speed_of_sound
