"""
NSS Measurement - orchestrated measurement workflow.

Sequences a complete measurement of a speaker set-up:

    idle -> initializing -> generating_signal -> setup_recording
         -> recording -> analyzing -> completed
    (any step) -> error

1) Generate the exponential sine sweep
2) Acquire the capture device (host collaborator)
3) Play the sweep and record lead-in + sweep + tail (host collaborator),
   bounded by a safety timeout of total duration + margin
4) Impulse-response extraction (host collaborator)
5) Reverberation analysis (host collaborator)
6) Arrival/delay estimation (single-buffer mode)
7) Frequency response (host collaborator) -> comb-filter detection
8) Validation of the results against the expected NSS ranges

Collaborators are injected as objects implementing the protocols below.
Blocking collaborators run in worker threads; every suspension point
observes the stop request of stop_measurement().
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Optional, Protocol, TypeVar

import numpy as np

from .audio_io import SampleBuffer
from .comb_filter import CombDetection, CombFilterConfig, CombFilterDetector, delay_to_distance
from .delay_estimation import DelayEstimator, DelayEstimatorConfig, SingleDelayResult
from .errors import (
    CaptureError,
    MeasurementCancelledError,
    MeasurementInProgressError,
    RecordingTimeoutError,
)
from .ess import ESSMetadata, ESSSignal, generate_ess
from ..utils.formatting import format_delay, format_frequency, format_percent, format_seconds

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ============================================================
# CONFIGURATION
# ============================================================

@dataclass
class MeasurementConfig:
    """Measurement workflow parameters."""
    # ESS
    ess_f1: float = 20.0
    ess_f2: float = 20_000.0
    ess_duration: float = 10.0
    ess_amplitude: float = 0.5
    ess_fade_in: float = 0.1
    ess_fade_out: float = 0.1

    # Recording
    recording_lead_in: float = 0.5
    recording_tail: float = 2.0
    safety_timeout_margin: float = 5.0

    # Comb filtering
    comb_min_freq: float = 20.0
    comb_max_freq: float = 20_000.0
    comb_confidence_threshold: float = 8.0
    comb_fft_size: int = 2048

    # Reverberation
    rt60_band_limited: bool = True

    # Delay estimation
    delay_search_window: float = 0.05
    delay_threshold: float = 0.1
    delay_min_separation: float = 0.001

    def __post_init__(self):
        if self.recording_lead_in < 0 or self.recording_tail < 0:
            raise ValueError("Lead-in and tail must be non-negative")
        if self.safety_timeout_margin <= 0:
            raise ValueError("Safety timeout margin must be positive")


_COMB_FIELDS = {"comb_min_freq", "comb_max_freq", "comb_confidence_threshold", "comb_fft_size"}
_DELAY_FIELDS = {"delay_search_window", "delay_threshold", "delay_min_separation"}


@dataclass
class ValidationConfig:
    """Expected ranges for an NSS set-up."""
    delay_range_ms: tuple[float, float] = (3.0, 15.0)        # Inter-array spacing
    reverberation_range_s: tuple[float, float] = (0.3, 1.2)  # Typical room range
    comb_confidence_limit: float = 0.7                       # Lower = less comb filtering
    comb_detected_confidence: float = 0.3
    good_ratio: float = 0.7
    acceptable_ratio: float = 0.5


class MeasurementStatus(str, Enum):
    """States of a measurement session."""
    IDLE = "idle"
    INITIALIZING = "initializing"
    GENERATING_SIGNAL = "generating_signal"
    SETUP_RECORDING = "setup_recording"
    RECORDING = "recording"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    ERROR = "error"


# ============================================================
# COLLABORATOR INTERFACES
# ============================================================

@dataclass(frozen=True)
class CaptureConstraints:
    """Requested capture device properties (raw, unprocessed input)."""
    sample_rate: int
    channel_count: int = 1
    echo_cancellation: bool = False
    noise_suppression: bool = False
    auto_gain_control: bool = False


class CaptureHandle(Protocol):
    def release(self) -> None: ...


class AudioCapture(Protocol):
    async def acquire(self, constraints: CaptureConstraints) -> CaptureHandle:
        """Raise PermissionDeniedError / DeviceNotFoundError on failure."""
        ...


class PlaybackRecorder(Protocol):
    async def play_and_record(
        self,
        excitation: np.ndarray,
        handle: CaptureHandle,
        sample_rate: int,
        lead_in: float,
        total_duration: float,
    ) -> SampleBuffer:
        """Play `excitation` after `lead_in` seconds, return the aligned recording."""
        ...


@dataclass(frozen=True, eq=False)
class ImpulseResponseData:
    impulse_response: np.ndarray
    onset_time: float
    duration: float


class ImpulseResponseExtractor(Protocol):
    def extract(
        self,
        recorded_sweep: np.ndarray,
        inverse_filter: np.ndarray,
        sample_rate: int,
    ) -> ImpulseResponseData: ...


@dataclass(frozen=True)
class BroadbandReverberation:
    edt: Optional[float] = None
    t20: Optional[float] = None
    t30: Optional[float] = None
    confidence: float = 0.0

    @property
    def reverberation_time(self) -> Optional[float]:
        """T30, falling back to T20, then EDT."""
        for value in (self.t30, self.t20, self.edt):
            if value is not None:
                return value
        return None


@dataclass(frozen=True)
class ReverberationResult:
    broadband: Optional[BroadbandReverberation] = None
    bands: Optional[dict] = None


class ReverberationAnalyzer(Protocol):
    def analyze(
        self,
        impulse_response: np.ndarray,
        sample_rate: int,
        band_limited: bool = True,
    ) -> ReverberationResult: ...


@dataclass(frozen=True, eq=False)
class FrequencyResponse:
    frequencies: np.ndarray
    magnitude: np.ndarray   # dB
    phase: np.ndarray


class FrequencyResponseProvider(Protocol):
    def get_frequency_response(
        self,
        impulse_response: np.ndarray,
        sample_rate: int,
    ) -> FrequencyResponse: ...


# ============================================================
# RESULTS
# ============================================================

@dataclass(frozen=True)
class Criterion:
    """Outcome of one validation check."""
    status: str                          # "pass", "warning" or "info"
    measured: Optional[float]
    expected: str
    confidence: float
    detected: Optional[bool] = None
    notch_spacing_hz: Optional[float] = None


@dataclass(frozen=True)
class ValidationReport:
    overall: str                         # excellent / good / acceptable / needs_improvement / unknown
    criteria: dict[str, Criterion] = field(default_factory=dict)
    recommendations: tuple[str, ...] = ()


@dataclass(frozen=True, eq=False)
class MeasurementResults:
    """Aggregated outcome of a completed measurement."""
    measurement_type: str
    timestamp: str
    sample_rate: int
    impulse_response: ImpulseResponseData
    frequency_response: FrequencyResponse
    reverberation: ReverberationResult
    delay: SingleDelayResult
    comb_filtering: Optional[CombDetection]
    validation: ValidationReport
    ess_parameters: ESSMetadata
    measurement_duration: float
    analysis_timestamp: str

    def to_dict(self) -> dict[str, Any]:
        """Nested plain-Python representation (arrays as lists)."""
        broadband = self.reverberation.broadband or BroadbandReverberation()
        comb = self.comb_filtering
        delay_ms = self.delay.delay_ms

        return {
            "success": True,
            "measurement_type": self.measurement_type,
            "timestamp": self.timestamp,
            "impulse_response": {
                "data": _to_list(self.impulse_response.impulse_response),
                "onset_time": self.impulse_response.onset_time,
                "duration": self.impulse_response.duration,
                "sample_rate": self.sample_rate,
            },
            "frequency_response": {
                "frequencies": _to_list(self.frequency_response.frequencies),
                "magnitude": _to_list(self.frequency_response.magnitude),
                "phase": _to_list(self.frequency_response.phase),
            },
            "reverberation": {
                "EDT": broadband.edt,
                "T20": broadband.t20,
                "T30": broadband.t30,
                "confidence": broadband.confidence,
                "bands": self.reverberation.bands,
            },
            "delay": {
                "primary_delay": delay_ms,
                "confidence": self.delay.confidence,
                "path_difference_m": None if delay_ms is None else delay_to_distance(delay_ms / 1000),
                "arrivals": [
                    {"time": a.time_s, "strength": a.strength, "confidence": a.confidence}
                    for a in self.delay.arrivals
                ],
                "all_delays": [
                    {"delay": d.delay_ms, "confidence": d.confidence} for d in self.delay.delays
                ],
                "method": self.delay.method,
            },
            "comb_filtering": {
                "detected": True,
                "delay": comb.delay_ms,
                "notch_spacing": comb.notch_spacing_hz,
                "confidence": comb.confidence,
                "notches": list(comb.notches),
            } if comb is not None else {
                "detected": False,
                "confidence": 0.0,
            },
            "nss_validation": {
                "overall": self.validation.overall,
                "criteria": {name: asdict(c) for name, c in self.validation.criteria.items()},
                "recommendations": list(self.validation.recommendations),
            },
            "metadata": {
                "measurement_duration": self.measurement_duration,
                "ess_parameters": asdict(self.ess_parameters),
                "analysis_timestamp": self.analysis_timestamp,
            },
        }


def _to_list(values: np.ndarray) -> list:
    return np.asarray(values, dtype=np.float64).tolist()


@dataclass
class MeasurementSession:
    """The single mutable record of the current measurement."""
    measurement_type: str
    start_time: datetime
    status: MeasurementStatus = MeasurementStatus.INITIALIZING
    results: Optional[MeasurementResults] = None
    error: Optional[str] = None


# ============================================================
# VALIDATION POLICY
# ============================================================

def validate_design(
    reverberation: Optional[ReverberationResult],
    delay: Optional[SingleDelayResult],
    comb: Optional[CombDetection],
    config: Optional[ValidationConfig] = None,
) -> ValidationReport:
    """
    Grade measurement results against the expected NSS ranges.

    Criteria are only evaluated when the corresponding measurement is
    available. The overall grade is "excellent" when all criteria pass,
    "good" for >= 70 %, "acceptable" for >= 50 %, otherwise
    "needs_improvement" ("unknown" without any criteria).
    """
    cfg = config or ValidationConfig()
    criteria: dict[str, Criterion] = {}
    recommendations: list[str] = []

    if delay is not None and delay.delay_ms is not None:
        low, high = cfg.delay_range_ms
        delay_ms = delay.delay_ms
        delay_ok = low <= delay_ms <= high
        criteria["delay"] = Criterion(
            status="pass" if delay_ok else "warning",
            measured=delay_ms,
            expected=f"{low:g}-{high:g} ms",
            confidence=delay.confidence,
        )
        if delay_ms < low:
            recommendations.append("Consider increasing distance between Set A and Set B speakers")
        elif delay_ms > high:
            recommendations.append("Delay between sets may be too large for optimal NSS effect")

    broadband = reverberation.broadband if reverberation is not None else None
    rt = broadband.reverberation_time if broadband is not None else None
    if rt is not None:
        low, high = cfg.reverberation_range_s
        rt_ok = low <= rt <= high
        criteria["reverberation"] = Criterion(
            status="pass" if rt_ok else "info",
            measured=rt,
            expected=f"{low:g}-{high:g} s",
            confidence=broadband.confidence,
        )
        if rt < low:
            recommendations.append("Room may be too acoustically dead for optimal NSS effect")
        elif rt > high:
            recommendations.append("Room reverberation may be excessive")

    if comb is not None:
        comb_ok = comb.confidence < cfg.comb_confidence_limit
        criteria["comb_filtering"] = Criterion(
            status="pass" if comb_ok else "warning",
            measured=comb.delay_ms,
            expected=f"confidence < {cfg.comb_confidence_limit:g}",
            confidence=comb.confidence,
            detected=comb.confidence > cfg.comb_detected_confidence,
            notch_spacing_hz=comb.notch_spacing_hz,
        )
        if not comb_ok:
            recommendations.append(
                "Significant comb filtering detected - check speaker positioning and crossover settings"
            )

    total = len(criteria)
    passed = sum(1 for c in criteria.values() if c.status == "pass")

    if total == 0:
        overall = "unknown"
    elif passed == total:
        overall = "excellent"
    elif passed >= total * cfg.good_ratio:
        overall = "good"
    elif passed >= total * cfg.acceptable_ratio:
        overall = "acceptable"
    else:
        overall = "needs_improvement"

    return ValidationReport(overall=overall, criteria=criteria, recommendations=tuple(recommendations))


# ============================================================
# ORCHESTRATOR
# ============================================================

class MeasurementOrchestrator:
    """
    Runs one measurement at a time.

    Usage:
        orchestrator = MeasurementOrchestrator(
            48000, capture, recorder, ir_extractor, reverb_analyzer, freq_provider,
        )
        results = await orchestrator.start_measurement("both")

    A second start while a measurement is running raises
    MeasurementInProgressError without touching the running session.
    stop_measurement() releases the capture device immediately and makes
    the running coroutine fail with MeasurementCancelledError.
    """

    def __init__(
        self,
        sample_rate: int,
        capture: AudioCapture,
        recorder: PlaybackRecorder,
        ir_extractor: ImpulseResponseExtractor,
        reverberation_analyzer: ReverberationAnalyzer,
        frequency_response: FrequencyResponseProvider,
        config: Optional[MeasurementConfig] = None,
        comb_detector: Optional[CombFilterDetector] = None,
        delay_estimator: Optional[DelayEstimator] = None,
        validation_config: Optional[ValidationConfig] = None,
    ):
        if sample_rate <= 0:
            raise ValueError("Sample rate must be positive")

        self.sample_rate = sample_rate
        self.config = config or MeasurementConfig()
        self.validation_config = validation_config or ValidationConfig()

        self._capture = capture
        self._recorder = recorder
        self._ir_extractor = ir_extractor
        self._reverberation_analyzer = reverberation_analyzer
        self._frequency_response = frequency_response

        # Injected collaborators are kept across update_config()
        self._owns_comb_detector = comb_detector is None
        self._owns_delay_estimator = delay_estimator is None
        self.comb_detector = comb_detector or self._build_comb_detector(self.config)
        self.delay_estimator = delay_estimator or self._build_delay_estimator(self.config)

        self.current_measurement: Optional[MeasurementSession] = None
        self._capture_handle: Optional[CaptureHandle] = None
        self._stop_event: Optional[asyncio.Event] = None

    def _build_comb_detector(self, config: MeasurementConfig) -> CombFilterDetector:
        return CombFilterDetector(CombFilterConfig(
            sample_rate=self.sample_rate,
            fft_size=config.comb_fft_size,
            min_freq=config.comb_min_freq,
            max_freq=config.comb_max_freq,
            confidence_threshold_db=config.comb_confidence_threshold,
        ))

    def _build_delay_estimator(self, config: MeasurementConfig) -> DelayEstimator:
        return DelayEstimator(DelayEstimatorConfig(
            search_window_s=config.delay_search_window,
            threshold=config.delay_threshold,
            min_separation_s=config.delay_min_separation,
        ))

    # --------------------------------------------------------
    # Public API
    # --------------------------------------------------------

    @property
    def is_recording(self) -> bool:
        """True while a measurement is in flight."""
        return self._stop_event is not None

    def get_measurement_status(self) -> Optional[MeasurementSession]:
        return self.current_measurement

    def update_config(self, **changes: Any) -> None:
        """
        Merge configuration changes.

        The comb detector / delay estimator are rebuilt when their
        parameters change. Instances passed to the constructor are kept
        as they are; their own configuration stays authoritative.
        """
        self.config = replace(self.config, **changes)
        if _COMB_FIELDS & changes.keys():
            if self._owns_comb_detector:
                self.comb_detector = self._build_comb_detector(self.config)
            else:
                logger.debug("Keeping injected comb detector")
        if _DELAY_FIELDS & changes.keys():
            if self._owns_delay_estimator:
                self.delay_estimator = self._build_delay_estimator(self.config)
            else:
                logger.debug("Keeping injected delay estimator")

    async def start_measurement(
        self,
        measurement_type: str = "both",
        **options: Any,
    ) -> MeasurementResults:
        """
        Run a complete measurement.

        Args:
            measurement_type: "setA", "setB" or "both"
            **options: MeasurementConfig overrides for this run only. Comb
                and delay parameters get a detector / estimator of their
                own for this run.

        Returns:
            MeasurementResults

        Raises:
            MeasurementInProgressError: Another measurement is running
            CaptureError: Capture device could not be acquired
            RecordingTimeoutError: Recording exceeded the safety timeout
            MeasurementCancelledError: stop_measurement() was called
        """
        if self._stop_event is not None:
            raise MeasurementInProgressError("Measurement already in progress")

        config = replace(self.config, **options) if options else self.config
        comb_detector = (
            self._build_comb_detector(config) if _COMB_FIELDS & options.keys() else self.comb_detector
        )
        delay_estimator = (
            self._build_delay_estimator(config) if _DELAY_FIELDS & options.keys() else self.delay_estimator
        )

        stop_event = asyncio.Event()
        self._stop_event = stop_event
        session = MeasurementSession(
            measurement_type=measurement_type,
            start_time=datetime.now(timezone.utc),
        )
        self.current_measurement = session
        logger.info("Starting %s measurement", measurement_type)

        try:
            self._set_status(session, MeasurementStatus.GENERATING_SIGNAL)
            ess = self._generate_ess_signal(config)

            self._set_status(session, MeasurementStatus.SETUP_RECORDING)
            await self._setup_recording(stop_event)

            self._set_status(session, MeasurementStatus.RECORDING)
            recording = await self._play_and_record(ess, config, stop_event)

            self._set_status(session, MeasurementStatus.ANALYZING)
            results = await self._analyze_recording(
                recording, ess, config, measurement_type, stop_event, comb_detector, delay_estimator,
            )
            _raise_if_stopped(stop_event, "analysis")

            session.results = results
            self._set_status(session, MeasurementStatus.COMPLETED)
            logger.info(
                "Measurement completed: delay %s, RT %s, validation %s",
                format_delay(results.delay.delay_ms),
                format_seconds(
                    results.reverberation.broadband.reverberation_time
                    if results.reverberation.broadband else None
                ),
                results.validation.overall,
            )
            return results

        except asyncio.CancelledError:
            session.status = MeasurementStatus.ERROR
            session.error = "Measurement task cancelled"
            raise
        except Exception as exc:
            session.status = MeasurementStatus.ERROR
            session.error = str(exc)
            logger.error("Measurement failed: %s", exc)
            raise
        finally:
            if self._stop_event is stop_event:
                self._stop_event = None
                self._cleanup()

    def stop_measurement(self) -> None:
        """Abort the running measurement and release the capture device."""
        stop_event = self._stop_event
        if stop_event is None:
            return

        logger.warning("Stopping measurement")
        stop_event.set()
        self._stop_event = None
        self._cleanup()

    def export_results(self, results: MeasurementResults, fmt: str = "json") -> bytes:
        """See nss_analyzer.core.export.export_results."""
        from .export import export_results
        return export_results(results, fmt)

    # --------------------------------------------------------
    # Workflow steps
    # --------------------------------------------------------

    def _set_status(self, session: MeasurementSession, status: MeasurementStatus) -> None:
        session.status = status
        logger.debug("Measurement status: %s", status.value)

    def _generate_ess_signal(self, config: MeasurementConfig) -> ESSSignal:
        return generate_ess(
            sample_rate=self.sample_rate,
            duration=config.ess_duration,
            f1=config.ess_f1,
            f2=config.ess_f2,
            amplitude=config.ess_amplitude,
            fade_in=config.ess_fade_in,
            fade_out=config.ess_fade_out,
        )

    async def _setup_recording(self, stop_event: asyncio.Event) -> None:
        constraints = CaptureConstraints(sample_rate=self.sample_rate)
        try:
            handle = await _await_or_stop(self._capture.acquire(constraints), stop_event, "device setup")
        except (CaptureError, MeasurementCancelledError):
            raise
        except Exception as exc:
            raise CaptureError(f"Failed to access microphone: {exc}") from exc

        if stop_event.is_set():
            handle.release()
            raise MeasurementCancelledError("Measurement cancelled during device setup")
        self._capture_handle = handle

    async def _play_and_record(
        self,
        ess: ESSSignal,
        config: MeasurementConfig,
        stop_event: asyncio.Event,
    ) -> SampleBuffer:
        total_duration = config.recording_lead_in + ess.metadata.duration + config.recording_tail
        timeout = total_duration + config.safety_timeout_margin

        recording = await _await_or_stop(
            self._recorder.play_and_record(
                ess.sweep,
                self._capture_handle,
                self.sample_rate,
                config.recording_lead_in,
                total_duration,
            ),
            stop_event,
            "recording",
            timeout=timeout,
        )

        if recording.sample_rate != self.sample_rate:
            raise ValueError(
                f"Recording sample rate {recording.sample_rate} Hz does not match {self.sample_rate} Hz"
            )
        return recording

    async def _analyze_recording(
        self,
        recording: SampleBuffer,
        ess: ESSSignal,
        config: MeasurementConfig,
        measurement_type: str,
        stop_event: asyncio.Event,
        comb_detector: CombFilterDetector,
        delay_estimator: DelayEstimator,
    ) -> MeasurementResults:
        sr = self.sample_rate

        ess_start = int(np.floor(config.recording_lead_in * sr))
        ess_recording = recording.get_time_range(ess_start, ess_start + ess.metadata.length)

        ir_data = await _await_or_stop(
            asyncio.to_thread(self._ir_extractor.extract, ess_recording, ess.inverse, sr),
            stop_event,
            "impulse response extraction",
        )
        impulse_response = np.asarray(ir_data.impulse_response, dtype=np.float64)

        reverberation = await _await_or_stop(
            asyncio.to_thread(
                self._reverberation_analyzer.analyze,
                impulse_response,
                sr,
                band_limited=config.rt60_band_limited,
            ),
            stop_event,
            "reverberation analysis",
        )

        delay = delay_estimator.estimate_single(impulse_response, sr)

        frequency_response = await _await_or_stop(
            asyncio.to_thread(self._frequency_response.get_frequency_response, impulse_response, sr),
            stop_event,
            "frequency response",
        )
        spectrum_db = _fit_spectrum(frequency_response, comb_detector)
        comb = comb_detector.detect(spectrum_db) if spectrum_db is not None else None
        if comb is not None:
            logger.info(
                "Comb filtering: %s (notch spacing %s), confidence %s",
                format_delay(comb.delay_ms),
                format_frequency(comb.notch_spacing_hz),
                format_percent(comb.confidence),
            )

        validation = validate_design(reverberation, delay, comb, self.validation_config)

        return MeasurementResults(
            measurement_type=measurement_type,
            timestamp=datetime.now(timezone.utc).isoformat(),
            sample_rate=sr,
            impulse_response=ir_data,
            frequency_response=frequency_response,
            reverberation=reverberation,
            delay=delay,
            comb_filtering=comb,
            validation=validation,
            ess_parameters=ess.metadata,
            measurement_duration=recording.duration_seconds,
            analysis_timestamp=datetime.now(timezone.utc).isoformat(),
        )

    def _cleanup(self) -> None:
        handle = self._capture_handle
        self._capture_handle = None
        if handle is not None:
            handle.release()
            logger.debug("Capture device released")


def _fit_spectrum(
    frequency_response: FrequencyResponse,
    detector: CombFilterDetector,
) -> Optional[np.ndarray]:
    """
    Bring a host spectrum onto the detector's bin grid.

    Spectra of the expected length are passed through. Other lengths are
    linearly interpolated over `frequencies` onto k * sample_rate / fft_size.
    Returns None if the spectrum cannot be mapped.
    """
    magnitude = np.asarray(frequency_response.magnitude, dtype=np.float64)
    expected = detector.fft_size // 2
    if magnitude.ndim == 1 and magnitude.shape[0] == expected:
        return magnitude

    frequencies = np.asarray(frequency_response.frequencies, dtype=np.float64)
    if (
        magnitude.ndim != 1
        or magnitude.shape != frequencies.shape
        or magnitude.shape[0] < 2
        or np.any(np.diff(frequencies) <= 0)
    ):
        logger.warning(
            "Frequency response with %s magnitude / %s frequency bins not usable for comb analysis",
            magnitude.shape, frequencies.shape,
        )
        return None

    grid = np.arange(expected) * detector.freq_per_bin
    if frequencies[0] > detector.min_bin * detector.freq_per_bin or (
        frequencies[-1] < detector.max_bin * detector.freq_per_bin
    ):
        logger.warning(
            "Frequency response %s-%s does not cover the comb analysis band",
            format_frequency(frequencies[0]), format_frequency(frequencies[-1]),
        )
        return None

    logger.debug("Resampling %d-bin frequency response to %d bins", magnitude.shape[0], expected)
    return np.interp(grid, frequencies, magnitude)


def _raise_if_stopped(stop_event: asyncio.Event, stage: str) -> None:
    if stop_event.is_set():
        raise MeasurementCancelledError(f"Measurement cancelled during {stage}")


async def _await_or_stop(
    awaitable: Awaitable[T],
    stop_event: asyncio.Event,
    stage: str,
    timeout: Optional[float] = None,
) -> T:
    """
    Await `awaitable` unless the stop event fires or the timeout expires.

    The abandoned operation is cancelled before the error is raised.
    """
    if stop_event.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        _raise_if_stopped(stop_event, stage)

    task = asyncio.ensure_future(awaitable)
    stop_waiter = asyncio.ensure_future(stop_event.wait())
    try:
        done, _ = await asyncio.wait(
            {task, stop_waiter},
            timeout=timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        stop_waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    # Drain the cancelled operation
    await asyncio.gather(task, return_exceptions=True)

    _raise_if_stopped(stop_event, stage)
    logger.warning("%s timed out after %.1f s", stage.capitalize(), timeout)
    raise RecordingTimeoutError(f"{stage.capitalize()} timeout")


__all__ = [
    "AudioCapture",
    "BroadbandReverberation",
    "CaptureConstraints",
    "CaptureHandle",
    "Criterion",
    "FrequencyResponse",
    "FrequencyResponseProvider",
    "ImpulseResponseData",
    "ImpulseResponseExtractor",
    "MeasurementConfig",
    "MeasurementOrchestrator",
    "MeasurementResults",
    "MeasurementSession",
    "MeasurementStatus",
    "PlaybackRecorder",
    "ReverberationAnalyzer",
    "ReverberationResult",
    "ValidationConfig",
    "ValidationReport",
    "validate_design",
]
