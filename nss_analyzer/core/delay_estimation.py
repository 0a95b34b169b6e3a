"""
Delay Estimation - arrival detection in impulse responses.

Estimates inter-arrival delays between direct and secondary sound
arrivals (e.g. two speaker sets).

Modes:
- dual: strongest onset in each of two buffers, delay = t_B - t_A
- single: several onsets in one buffer, delays between consecutive ones
- cross-correlation: lag of the maximum normalized cross-correlation

Onset algorithm:
1) Short-time energy (~1 ms Hann-weighted window)
2) Threshold = max energy * fraction
3) Local maxima above the threshold (first one, or all respecting a
   minimum separation)
4) Parabolic interpolation for sub-sample precision
5) Confidence from the SNR against the median of the leading energy
   samples, 6..26 dB mapped onto 0..1

Failing to find an onset is reported in the result (found=False or an
empty arrival list), never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from .signal_processing import (
    median_noise_floor,
    parabolic_interpolation,
    short_time_energy,
    snr_to_confidence,
)

logger = logging.getLogger(__name__)


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass
class DelayEstimatorConfig:
    """Onset detection parameters."""
    search_window_s: float = 0.05      # Only the first 50 ms are searched
    threshold: float = 0.1             # Fraction of the maximum energy
    min_separation_s: float = 0.001    # Single mode: minimum peak spacing
    energy_window_s: float = 0.001
    noise_floor_samples: int = 50
    snr_floor_db: float = 6.0          # SNR mapped to confidence 0
    snr_range_db: float = 20.0         # SNR span up to confidence 1

    def __post_init__(self):
        if self.search_window_s <= 0:
            raise ValueError("Search window must be positive")
        if not 0 < self.threshold <= 1:
            raise ValueError("Threshold must be in (0, 1]")
        if self.min_separation_s < 0:
            raise ValueError("Minimum separation must be non-negative")
        if self.energy_window_s <= 0:
            raise ValueError("Energy window must be positive")
        if self.noise_floor_samples < 1:
            raise ValueError("Noise floor needs at least one sample")
        if self.snr_range_db <= 0:
            raise ValueError("SNR range must be positive")


@dataclass(frozen=True)
class Arrival:
    """A detected onset."""
    index: float          # Sub-sample refined position in samples
    time_s: float
    strength: float       # Short-time energy at the peak
    confidence: float     # 0..1
    snr_db: float


@dataclass(frozen=True)
class DualDelayResult:
    """Delay between the onsets of two buffers."""
    found: bool
    delay_ms: Optional[float]
    delay_samples: Optional[float]
    confidence: float
    arrival_a: Optional[Arrival]
    arrival_b: Optional[Arrival]
    sample_rate: int
    method: str = "dual-IR"


@dataclass(frozen=True)
class ArrivalDelay:
    """Delay between two consecutive arrivals."""
    delay_ms: float
    confidence: float
    from_arrival: Arrival
    to_arrival: Arrival


@dataclass(frozen=True)
class SingleDelayResult:
    """
    Arrivals found in one buffer.

    `primary` is the first-to-second arrival delay, None with fewer than
    two arrivals.
    """
    arrivals: tuple[Arrival, ...]
    delays: tuple[ArrivalDelay, ...]
    sample_rate: int
    method: str = "single-IR"

    @property
    def found(self) -> bool:
        return len(self.delays) > 0

    @property
    def primary(self) -> Optional[ArrivalDelay]:
        return self.delays[0] if self.delays else None

    @property
    def delay_ms(self) -> Optional[float]:
        return self.primary.delay_ms if self.primary else None

    @property
    def confidence(self) -> float:
        return self.primary.confidence if self.primary else 0.0


@dataclass(frozen=True)
class CrossCorrelationResult:
    """Cross-correlation delay estimate."""
    delay_ms: float
    confidence: float
    correlation: float
    lag: int
    method: str = "cross-correlation"


# ============================================================
# ESTIMATOR
# ============================================================

class DelayEstimator:
    """
    Stateless onset/delay estimator.

    Usage:
        estimator = DelayEstimator()
        single = estimator.estimate_single(ir, 48000)
        dual = estimator.estimate_dual(ir_a, ir_b, 48000)
    """

    def __init__(self, config: Optional[DelayEstimatorConfig] = None):
        self.config = config or DelayEstimatorConfig()

    def estimate(
        self,
        buffer_a: np.ndarray,
        sample_rate: int,
        buffer_b: Optional[np.ndarray] = None,
    ) -> Union[DualDelayResult, SingleDelayResult]:
        """Dual mode if a second buffer is given, single mode otherwise."""
        if buffer_b is not None:
            return self.estimate_dual(buffer_a, buffer_b, sample_rate)
        return self.estimate_single(buffer_a, sample_rate)

    def estimate_dual(
        self,
        buffer_a: np.ndarray,
        buffer_b: np.ndarray,
        sample_rate: int,
    ) -> DualDelayResult:
        """Delay between the first onsets of two buffers."""
        arrivals_a = self.find_arrivals(buffer_a, sample_rate, multiple=False)
        arrivals_b = self.find_arrivals(buffer_b, sample_rate, multiple=False)

        if not arrivals_a or not arrivals_b:
            logger.debug("Could not detect arrivals in both buffers")
            return DualDelayResult(
                found=False,
                delay_ms=None,
                delay_samples=None,
                confidence=0.0,
                arrival_a=arrivals_a[0] if arrivals_a else None,
                arrival_b=arrivals_b[0] if arrivals_b else None,
                sample_rate=sample_rate,
            )

        arrival_a = arrivals_a[0]
        arrival_b = arrivals_b[0]
        delay_samples = arrival_b.index - arrival_a.index

        return DualDelayResult(
            found=True,
            delay_ms=delay_samples / sample_rate * 1000,
            delay_samples=delay_samples,
            confidence=min(arrival_a.confidence, arrival_b.confidence),
            arrival_a=arrival_a,
            arrival_b=arrival_b,
            sample_rate=sample_rate,
        )

    def estimate_single(self, buffer: np.ndarray, sample_rate: int) -> SingleDelayResult:
        """Delays between consecutive arrivals in one buffer."""
        arrivals = sorted(
            self.find_arrivals(buffer, sample_rate, multiple=True),
            key=lambda a: a.index,
        )

        delays = tuple(
            ArrivalDelay(
                delay_ms=(later.index - earlier.index) / sample_rate * 1000,
                confidence=min(earlier.confidence, later.confidence),
                from_arrival=earlier,
                to_arrival=later,
            )
            for earlier, later in zip(arrivals, arrivals[1:])
        )

        if len(arrivals) < 2:
            logger.debug("Insufficient arrivals detected: %d", len(arrivals))

        return SingleDelayResult(
            arrivals=tuple(arrivals),
            delays=delays,
            sample_rate=sample_rate,
        )

    def find_arrivals(
        self,
        buffer: np.ndarray,
        sample_rate: int,
        multiple: bool = True,
    ) -> list[Arrival]:
        """
        Locate onsets via short-time energy.

        Args:
            buffer: 1D impulse response
            sample_rate: Sample rate in Hz
            multiple: Return all separated peaks instead of the first one

        Returns:
            Arrivals in time order (empty if nothing clears the threshold)
        """
        cfg = self.config
        buffer = np.asarray(buffer, dtype=np.float64)
        if buffer.ndim != 1:
            raise ValueError("Delay estimation requires a 1D buffer")
        if sample_rate <= 0:
            raise ValueError("Sample rate must be positive")

        search_length = min(int(cfg.search_window_s * sample_rate), len(buffer))
        if search_length < 3:
            return []

        window_size = max(1, int(cfg.energy_window_s * sample_rate))
        energy = short_time_energy(buffer[:search_length], window_size)

        max_energy = float(np.max(energy))
        if max_energy <= 0:
            return []

        candidates = _local_maxima(energy, max_energy * cfg.threshold)
        if not multiple:
            candidates = candidates[:1]

        min_separation = int(cfg.min_separation_s * sample_rate)
        noise_floor = median_noise_floor(energy, cfg.noise_floor_samples)

        arrivals: list[Arrival] = []
        accepted: list[int] = []
        for peak_index in candidates:
            if any(abs(peak_index - other) < min_separation for other in accepted):
                continue

            strength = float(energy[peak_index])
            snr_db = 20 * np.log10(strength / (noise_floor + 1e-10))
            refined = parabolic_interpolation(energy, peak_index)

            accepted.append(peak_index)
            arrivals.append(Arrival(
                index=refined,
                time_s=refined / sample_rate,
                strength=strength,
                confidence=snr_to_confidence(snr_db, cfg.snr_floor_db, cfg.snr_range_db),
                snr_db=float(snr_db),
            ))

        logger.debug("Found %d arrival(s) in %d samples", len(arrivals), search_length)
        return arrivals

    def cross_correlation_delay(
        self,
        signal_a: np.ndarray,
        signal_b: np.ndarray,
        sample_rate: int,
        max_delay: float = 0.05,
    ) -> CrossCorrelationResult:
        return cross_correlation_delay(signal_a, signal_b, sample_rate, max_delay)


def _local_maxima(energy: np.ndarray, threshold: float) -> list[int]:
    """Indices above threshold that exceed their left neighbour and are >= their right one."""
    padded = np.concatenate(([-np.inf], energy, [-np.inf]))
    mask = (
        (energy > threshold)
        & (energy > padded[:-2])
        & (energy >= padded[2:])
    )
    return [int(i) for i in np.flatnonzero(mask)]


def cross_correlation_delay(
    signal_a: np.ndarray,
    signal_b: np.ndarray,
    sample_rate: int,
    max_delay: float = 0.05,
    window_s: float = 0.02,
) -> CrossCorrelationResult:
    """
    Estimate the delay of signal_b relative to signal_a.

    Normalized cross-correlation of the first `window_s` seconds of
    signal_a against signal_b for lags in [-max_lag, +max_lag]. Lags whose
    overlap covers less than half the window are skipped.

    Args:
        signal_a: Reference signal
        signal_b: Delayed signal
        sample_rate: Sample rate in Hz
        max_delay: Maximum expected delay in seconds
        window_s: Correlation window in seconds

    Returns:
        CrossCorrelationResult (positive delay: signal_b arrives later)
    """
    signal_a = np.asarray(signal_a, dtype=np.float64)
    signal_b = np.asarray(signal_b, dtype=np.float64)

    max_lag = int(max_delay * sample_rate)
    correlation_length = min(len(signal_a), len(signal_b), int(window_s * sample_rate))
    min_overlap = max(1, correlation_length // 2)

    best_correlation = -np.inf
    best_lag = 0

    for lag in range(-max_lag, max_lag + 1):
        start = max(0, -lag)
        stop = min(correlation_length, len(signal_b) - lag)
        if stop - start < min_overlap:
            continue

        segment_a = signal_a[start:stop]
        segment_b = signal_b[start + lag:stop + lag]
        norm = np.sqrt(np.dot(segment_a, segment_a) * np.dot(segment_b, segment_b))
        if norm <= 0:
            continue

        correlation = float(np.dot(segment_a, segment_b) / norm)
        if correlation > best_correlation:
            best_correlation = correlation
            best_lag = lag

    if best_correlation == -np.inf:
        best_correlation = 0.0

    return CrossCorrelationResult(
        delay_ms=best_lag / sample_rate * 1000,
        confidence=float(np.clip(best_correlation, 0.0, 1.0)),
        correlation=best_correlation,
        lag=best_lag,
    )
