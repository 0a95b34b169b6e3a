"""
Core measurement module - fully testable without audio hardware.

This module contains all signal processing and measurement logic:
- Radix-2 FFT for cepstral analysis
- Exponential sine sweep (ESS) generation
- Comb-filter detection
- Arrival/delay estimation
- Measurement orchestration and result export
"""

from .audio_io import SampleBuffer, encode_wav
from .comb_filter import (
    CombDetection,
    CombFilterConfig,
    CombFilterDetector,
    DetectionHistory,
    comb_magnitude_response,
    comb_notch_frequencies,
    comb_peak_frequencies,
    delay_to_distance,
    distance_to_delay,
)
from .delay_estimation import (
    Arrival,
    CrossCorrelationResult,
    DelayEstimator,
    DelayEstimatorConfig,
    DualDelayResult,
    SingleDelayResult,
    cross_correlation_delay,
)
from .errors import (
    CaptureError,
    DeviceNotFoundError,
    MeasurementCancelledError,
    MeasurementError,
    MeasurementInProgressError,
    PermissionDeniedError,
    RecordingTimeoutError,
)
from .ess import (
    ESSMetadata,
    ESSSignal,
    frequency_at_time,
    generate_ess,
    generate_pink_noise,
    time_at_frequency,
)
from .export import ExportFormat, export_results
from .fft import FFT, is_power_of_two, next_power_of_two
from .measurement import (
    MeasurementConfig,
    MeasurementOrchestrator,
    MeasurementResults,
    MeasurementSession,
    MeasurementStatus,
    ValidationConfig,
    ValidationReport,
    validate_design,
)

__all__ = [
    "SampleBuffer",
    "encode_wav",
    "CombDetection",
    "CombFilterConfig",
    "CombFilterDetector",
    "DetectionHistory",
    "comb_magnitude_response",
    "comb_notch_frequencies",
    "comb_peak_frequencies",
    "delay_to_distance",
    "distance_to_delay",
    "Arrival",
    "CrossCorrelationResult",
    "DelayEstimator",
    "DelayEstimatorConfig",
    "DualDelayResult",
    "SingleDelayResult",
    "cross_correlation_delay",
    "CaptureError",
    "DeviceNotFoundError",
    "MeasurementCancelledError",
    "MeasurementError",
    "MeasurementInProgressError",
    "PermissionDeniedError",
    "RecordingTimeoutError",
    "ESSMetadata",
    "ESSSignal",
    "frequency_at_time",
    "generate_ess",
    "generate_pink_noise",
    "time_at_frequency",
    "ExportFormat",
    "export_results",
    "FFT",
    "is_power_of_two",
    "next_power_of_two",
    "MeasurementConfig",
    "MeasurementOrchestrator",
    "MeasurementResults",
    "MeasurementSession",
    "MeasurementStatus",
    "ValidationConfig",
    "ValidationReport",
    "validate_design",
]
