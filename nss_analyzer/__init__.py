"""
NSS Analyzer - measurement core for loudspeaker/room characterisation.

Generates exponential sine sweeps, estimates arrival delays between
speaker sets and detects comb filtering in measured spectra.
Audio capture, playback and rendering are provided by the host.
"""

import logging

__version__ = "1.0.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
