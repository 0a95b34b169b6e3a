"""
Excitation Signals

Exponential sine sweep (ESS) with matched inverse filter, following
Farina's method: convolving the recorded sweep response with the inverse
filter yields the impulse response of the system under test.

Technical assumptions:
- Instantaneous phase: phi(t) = 2*pi*f1 * K * (exp(t/K) - 1)
- Time constant: K = duration / ln(f2 / f1)
- Inverse filter: time-reversed sweep weighted by exp(-t/K), t running
  along the reversed signal (-6 dB/octave from the high-frequency start,
  compensates the pink energy distribution of the sweep)
- Both buffers receive raised-cosine fades
- Buffers are float64 and read-only once generated
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy import signal

from .signal_processing import apply_fades

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ESSMetadata:
    """Parameters a sweep was generated with."""
    sample_rate: int
    duration: float
    length: int
    f1: float
    f2: float
    amplitude: float
    K: float                 # Time constant in seconds
    fade_in: float
    fade_out: float


@dataclass(frozen=True, eq=False)
class ESSSignal:
    """
    Sweep and its inverse filter.

    Attributes:
        sweep: Excitation signal, Shape: (length,)
        inverse: Inverse filter, Shape: (length,)
        metadata: Generation parameters
    """
    sweep: np.ndarray
    inverse: np.ndarray
    metadata: ESSMetadata


def generate_ess(
    sample_rate: int = 48_000,
    duration: float = 10.0,
    f1: float = 20.0,
    f2: float = 20_000.0,
    amplitude: float = 0.5,
    fade_in: float = 0.1,
    fade_out: float = 0.1,
) -> ESSSignal:
    """
    Generate an exponential sine sweep and its inverse filter.

    Args:
        sample_rate: Sample rate in Hz
        duration: Sweep duration in seconds
        f1: Start frequency in Hz
        f2: End frequency in Hz
        amplitude: Peak amplitude (0-1)
        fade_in: Fade-in duration in seconds
        fade_out: Fade-out duration in seconds

    Returns:
        ESSSignal with sweep, inverse filter and metadata

    Raises:
        ValueError: Invalid frequency range, duration or sample rate
    """
    if sample_rate <= 0:
        raise ValueError(f"Sample rate must be positive, got: {sample_rate}")
    if duration <= 0:
        raise ValueError(f"Duration must be positive, got: {duration}")
    if not 0 < f1 < f2:
        raise ValueError(f"Sweep requires 0 < f1 < f2, got: f1={f1}, f2={f2}")
    if f2 > sample_rate / 2:
        logger.warning(
            "Sweep end frequency %.1f Hz exceeds Nyquist (%.1f Hz)", f2, sample_rate / 2
        )

    length = int(np.floor(duration * sample_rate))
    K = duration / np.log(f2 / f1)
    w1 = 2 * np.pi * f1

    t = np.arange(length) / sample_rate
    sweep = amplitude * np.sin(w1 * K * (np.exp(t / K) - 1))

    # Envelope runs on the reversed time axis: inverse[n] = sweep[L-1-n] * exp(-t[n]/K)
    inverse = sweep[::-1] * np.exp(-t / K)

    sweep = apply_fades(sweep, sample_rate, fade_in, fade_out)
    inverse = apply_fades(inverse, sample_rate, fade_in, fade_out)
    sweep.setflags(write=False)
    inverse.setflags(write=False)

    metadata = ESSMetadata(
        sample_rate=sample_rate,
        duration=duration,
        length=length,
        f1=f1,
        f2=f2,
        amplitude=amplitude,
        K=float(K),
        fade_in=fade_in,
        fade_out=fade_out,
    )
    logger.debug("Generated ESS: %d samples, %.0f-%.0f Hz, K=%.4f s", length, f1, f2, K)

    return ESSSignal(sweep=sweep, inverse=inverse, metadata=metadata)


def frequency_at_time(t: float, f1: float, K: float) -> float:
    """Instantaneous sweep frequency at time t (seconds)."""
    return f1 * np.exp(t / K)


def time_at_frequency(f: float, f1: float, K: float) -> float:
    """Time (seconds) at which the sweep passes frequency f."""
    return K * np.log(f / f1)


def generate_pink_noise(
    sample_rate: int = 48_000,
    duration: float = 5.0,
    amplitude: float = 0.3,
    seed: Optional[int] = None,
    num_octaves: int = 8,
) -> np.ndarray:
    """
    Generate approximate pink noise.

    White noise is fed through a bank of first-order leaky integrators
    y[n] = y[n-1] + c * (x[n] - y[n-1]) with cutoff c = 0.1 / 2^i and
    per-band gain 2^(-i/2) (-3 dB per octave); the band outputs are summed.

    Args:
        sample_rate: Sample rate in Hz
        duration: Duration in seconds
        amplitude: Output scaling
        seed: Seed for reproducible noise
        num_octaves: Number of integrator bands

    Returns:
        1D float64 array
    """
    if duration < 0:
        raise ValueError("Duration must be non-negative")

    length = int(np.floor(duration * sample_rate))
    rng = np.random.default_rng(seed)
    white = rng.uniform(-1.0, 1.0, length)

    noise = np.zeros(length)
    for octave in range(num_octaves):
        cutoff = 0.1 / 2 ** octave
        gain = 2 ** (-octave * 0.5)
        band = signal.lfilter([cutoff], [1.0, cutoff - 1.0], white)
        noise += gain * band

    return amplitude * noise * 0.1
