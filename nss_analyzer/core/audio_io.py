"""
Audio I/O Module

Sample buffers and in-memory WAV encoding without implicit signal manipulation.

Technical assumptions:
- WAV data is encoded with soundfile (libsndfile)
- All audio data is handled as float64 numpy arrays (range -1.0 to 1.0)
- Buffers are mono; multichannel data is rejected, not downmixed
- Buffers are read-only once created
"""

import io
import warnings
from dataclasses import dataclass, field
from typing import Literal

import numpy as np
import soundfile as sf

from .signal_processing import compute_peak

WavSubtype = Literal["PCM_16", "PCM_24", "PCM_32", "FLOAT"]


@dataclass(frozen=True, eq=False)
class SampleBuffer:
    """
    Fixed-length mono signal at a known sample rate.

    Attributes:
        data: Samples as read-only float64 array, Shape: (samples,)
        sample_rate: Sample rate in Hz
        metadata: Free-form annotations (e.g. lead-in of a recording)
    """
    data: np.ndarray
    sample_rate: int
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        """Validate and freeze the sample array."""
        data = np.array(self.data, dtype=np.float64)
        if data.ndim != 1:
            raise ValueError("Sample buffer must be 1D (mono)")
        if self.sample_rate <= 0:
            raise ValueError("Sample rate must be positive")
        data.setflags(write=False)
        object.__setattr__(self, "data", data)

    def __len__(self) -> int:
        return self.num_samples

    @property
    def num_samples(self) -> int:
        return int(self.data.shape[0])

    @property
    def duration_seconds(self) -> float:
        return self.num_samples / self.sample_rate

    def time_to_sample(self, time_seconds: float) -> int:
        """Convert time in seconds to sample index."""
        sample = int(time_seconds * self.sample_rate)
        return max(0, min(sample, self.num_samples - 1))

    def sample_to_time(self, sample: int) -> float:
        """Convert sample index to time in seconds."""
        return sample / self.sample_rate

    def get_time_range(self, start_sample: int, end_sample: int) -> np.ndarray:
        """
        Extract a sample range (non-destructive).

        Returns:
            Writable copy of the samples in [start, end)
        """
        start = max(0, start_sample)
        end = min(end_sample, self.num_samples)
        return self.data[start:end].copy()


def _prepare_for_write(data: np.ndarray) -> np.ndarray:
    data = np.asarray(data)
    if data.ndim != 1:
        raise ValueError("Audio must be 1D (mono)")
    if not np.issubdtype(data.dtype, np.floating):
        raise ValueError("Audio data must be float")

    if data.size and compute_peak(data) > 1.0:
        warnings.warn(
            "Audio data exceeds [-1.0, 1.0]. Clipping will be applied.",
            UserWarning,
        )
        data = np.clip(data, -1.0, 1.0)
    return data


def encode_wav(
    data: np.ndarray,
    sample_rate: int,
    subtype: WavSubtype = "PCM_16",
) -> bytes:
    """
    Encode a mono signal as a WAV byte string.

    Args:
        data: Audio data (float, range -1.0 to 1.0)
        sample_rate: Sample rate in Hz
        subtype: WAV subtype for quantization

    Returns:
        Complete RIFF/WAVE file contents
    """
    data = _prepare_for_write(data)
    buffer = io.BytesIO()
    sf.write(buffer, data, sample_rate, format="WAV", subtype=subtype)
    return buffer.getvalue()

