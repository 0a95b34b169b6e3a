"""
Result Export

Serializes MeasurementResults for storage or download.

Formats:
- json: Complete result tree, arrays as lists
- csv: Sectioned two-column summary (missing values as "N/A")
- wav: Impulse response as mono 16-bit PCM WAV
"""

import csv
import io
import json
import logging
from enum import Enum
from typing import Any, Union

import numpy as np

from .audio_io import encode_wav
from .measurement import BroadbandReverberation, MeasurementResults
from ..utils.formatting import format_optional

logger = logging.getLogger(__name__)


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"
    WAV = "wav"


def export_results(
    results: MeasurementResults,
    fmt: Union[str, ExportFormat] = ExportFormat.JSON,
) -> bytes:
    """
    Export measurement results.

    Args:
        results: Completed measurement
        fmt: "json", "csv" or "wav"

    Returns:
        Encoded file contents

    Raises:
        ValueError: Unsupported format
    """
    try:
        export_format = ExportFormat(fmt)
    except ValueError:
        raise ValueError(f"Unsupported export format: {fmt}") from None

    if export_format is ExportFormat.JSON:
        payload = export_json(results)
    elif export_format is ExportFormat.CSV:
        payload = export_csv(results)
    else:
        payload = export_wav(results)

    logger.debug("Exported results as %s (%d bytes)", export_format.value, len(payload))
    return payload


def export_json(results: MeasurementResults) -> bytes:
    return json.dumps(results.to_dict(), indent=2, default=_json_default).encode("utf-8")


def _json_default(value: Any) -> Any:
    # numpy scalars/arrays from host collaborators (e.g. per-band RT)
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def export_csv(results: MeasurementResults) -> bytes:
    """Two-column summary, one section per analysis."""
    broadband = results.reverberation.broadband or BroadbandReverberation()
    comb = results.comb_filtering

    rows = [
        ["NSS Measurement Results"],
        ["Timestamp", results.timestamp],
        [],
        ["Reverberation Analysis"],
        ["EDT (s)", format_optional(broadband.edt)],
        ["T20 (s)", format_optional(broadband.t20)],
        ["T30 (s)", format_optional(broadband.t30)],
        ["Confidence", format_optional(broadband.confidence, 2)],
        [],
        ["Delay Analysis"],
        ["Primary Delay (ms)", format_optional(results.delay.delay_ms)],
        ["Confidence", format_optional(results.delay.confidence, 2)],
        [],
        ["Comb Filtering"],
        ["Detected", str(comb is not None).lower()],
        ["Confidence", format_optional(comb.confidence if comb else 0.0, 2)],
        ["Notch Spacing (Hz)", format_optional(comb.notch_spacing_hz if comb else None, 1)],
        [],
        ["NSS Validation"],
        ["Overall Assessment", results.validation.overall],
    ]

    text = io.StringIO()
    writer = csv.writer(text, lineterminator="\n")
    writer.writerows(rows)
    return text.getvalue().encode("utf-8")


def export_wav(results: MeasurementResults) -> bytes:
    """Impulse response as 16-bit PCM, clamped to [-1, 1]."""
    ir = np.asarray(results.impulse_response.impulse_response, dtype=np.float64)
    return encode_wav(np.clip(ir, -1.0, 1.0), results.sample_rate, subtype="PCM_16")
