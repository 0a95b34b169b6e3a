"""
General Signal Processing

Shared helpers used by the generators and estimators.
All functions are EXPLICIT - no automatic conversions.

Technical assumptions:
- Fades use a raised-cosine (half Hann) shape
- Short-time energy is a centred, Hann-weighted mean of squared samples
- All operations work on copies, original data remains unchanged
"""

import numpy as np
from scipy import signal


def apply_fades(
    data: np.ndarray,
    sample_rate: int,
    fade_in: float,
    fade_out: float,
) -> np.ndarray:
    """
    Apply raised-cosine fade-in and fade-out.

    Fades suppress clicks and spectral leakage at the buffer edges.
    The factor for the i-th sample of a fade of n samples is
    0.5 * (1 - cos(pi * i / n)), mirrored for the fade-out.

    Args:
        data: 1D signal
        sample_rate: Sample rate in Hz
        fade_in: Fade-in duration in seconds
        fade_out: Fade-out duration in seconds

    Returns:
        Faded copy of the signal
    """
    if fade_in < 0 or fade_out < 0:
        raise ValueError("Fade durations must be non-negative")

    result = np.array(data, dtype=np.float64)
    length = len(result)

    fade_in_samples = int(fade_in * sample_rate)
    fade_out_samples = int(fade_out * sample_rate)

    if fade_in_samples > 0:
        count = min(fade_in_samples, length)
        ramp = 0.5 * (1 - np.cos(np.pi * np.arange(count) / fade_in_samples))
        result[:count] *= ramp

    if fade_out_samples > 0:
        count = min(fade_out_samples, length)
        ramp = 0.5 * (1 - np.cos(np.pi * np.arange(count) / fade_out_samples))
        result[length - count:] *= ramp[::-1]

    return result


def short_time_energy(
    data: np.ndarray,
    window_size: int,
) -> np.ndarray:
    """
    Compute short-time energy (mean squared amplitude).

    The window is centred on each sample and Hann-weighted, so an
    isolated impulse produces a single maximum exactly at its position.
    Even sizes are rounded up to the next odd size.

    Args:
        data: 1D signal
        window_size: Window length in samples

    Returns:
        Energy per sample, same length as the input
    """
    data = np.asarray(data, dtype=np.float64)
    if data.ndim != 1:
        raise ValueError("Short-time energy requires a 1D signal")

    window_size = max(1, int(window_size))
    if window_size % 2 == 0:
        window_size += 1

    if window_size < 3:
        return data ** 2

    weights = signal.windows.hann(window_size + 2)[1:-1]
    weights /= np.sum(weights)

    # "same" mode would return len(weights) samples for short buffers
    half = window_size // 2
    return np.convolve(data ** 2, weights, mode="full")[half:half + len(data)]


def parabolic_interpolation(data: np.ndarray, peak_index: int) -> float:
    """
    Refine a peak location to sub-sample precision.

    Fits a parabola through the peak and its two neighbours. The vertex
    offset is clamped to +-0.5 samples. Peaks on the buffer edge are
    returned unchanged.

    Returns:
        Refined (fractional) index
    """
    if peak_index <= 0 or peak_index >= len(data) - 1:
        return float(peak_index)

    y1 = float(data[peak_index - 1])
    y2 = float(data[peak_index])
    y3 = float(data[peak_index + 1])

    a = (y1 - 2 * y2 + y3) / 2
    b = (y3 - y1) / 2

    if abs(a) < 1e-10:
        return float(peak_index)

    offset = -b / (2 * a)
    return peak_index + float(np.clip(offset, -0.5, 0.5))


def median_noise_floor(data: np.ndarray, max_samples: int = 50) -> float:
    """
    Estimate a noise floor as the median of the leading samples.

    Returns 1e-10 for empty input.
    """
    early = np.asarray(data[:max_samples], dtype=np.float64)
    if early.size == 0:
        return 1e-10
    return float(np.median(early))


def snr_to_confidence(
    snr_db: float,
    snr_floor_db: float = 6.0,
    snr_range_db: float = 20.0,
) -> float:
    """
    Map an SNR in dB linearly onto a confidence in [0, 1].

    With the defaults, 6 dB maps to 0 and 26 dB to 1.
    """
    return float(np.clip((snr_db - snr_floor_db) / snr_range_db, 0.0, 1.0))


def db_to_linear(db: np.ndarray) -> np.ndarray:
    """Convert magnitude in dB to linear amplitude."""
    return 10 ** (np.asarray(db, dtype=np.float64) / 20)


def linear_to_db(linear: np.ndarray, min_db: float = -200.0) -> np.ndarray:
    """Convert linear amplitude to dB, floored at min_db."""
    linear = np.abs(np.asarray(linear, dtype=np.float64))
    return np.maximum(20 * np.log10(np.maximum(linear, 1e-300)), min_db)


def compute_rms(data: np.ndarray, as_db: bool = False) -> float:
    """
    Compute RMS (Root Mean Square) of the signal.

    Args:
        data: Audio data
        as_db: If True, return in dB (reference: 1.0)

    Returns:
        RMS value (linear or dB)
    """
    rms = float(np.sqrt(np.mean(np.asarray(data, dtype=np.float64) ** 2)))

    if as_db:
        if rms == 0:
            return -np.inf
        return 20 * np.log10(rms)

    return rms


def compute_peak(data: np.ndarray, as_db: bool = False) -> float:
    """
    Compute peak value (absolute maximum) of the signal.

    Args:
        data: Audio data
        as_db: If True, return in dB (reference: 1.0)

    Returns:
        Peak value (linear or dB)
    """
    peak = float(np.max(np.abs(data)))

    if as_db:
        if peak == 0:
            return -np.inf
        return 20 * np.log10(peak)

    return peak
