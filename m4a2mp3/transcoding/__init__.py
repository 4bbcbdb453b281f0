"""
Transcoding package for m4a2mp3.
Binary discovery, capability and input probing, deadline budgeting and the
ffmpeg strategy fallback chain.
"""

from .runner import ProcessResult, ProcessRunner, run_process
from .locator import BinaryLocation, BinaryLocator, candidate_paths, locate_executable
from .capabilities import CapabilityProber, EncoderCapabilities, parse_encoder_listing
from .probe import InputProfile, MediaProbe, classify_profile, parse_probe_output
from .deadline import Deadline
from .strategies import (
    DEFAULT_STRATEGIES,
    ConversionStrategy,
    load_strategies,
    select_strategies,
)
from .error_classifier import ErrorClassifier, get_error_classifier
from .signatures import is_mp3, sniff_content_type
from .engine import AttemptOutcome, AttemptRecord, ConversionResult, FallbackEngine

__all__ = [
    # Runner
    "ProcessResult",
    "ProcessRunner",
    "run_process",
    # Discovery and probing
    "BinaryLocation",
    "BinaryLocator",
    "candidate_paths",
    "locate_executable",
    "CapabilityProber",
    "EncoderCapabilities",
    "parse_encoder_listing",
    "InputProfile",
    "MediaProbe",
    "classify_profile",
    "parse_probe_output",
    # Budget
    "Deadline",
    # Strategies
    "DEFAULT_STRATEGIES",
    "ConversionStrategy",
    "load_strategies",
    "select_strategies",
    # Engine
    "ErrorClassifier",
    "get_error_classifier",
    "is_mp3",
    "sniff_content_type",
    "AttemptOutcome",
    "AttemptRecord",
    "ConversionResult",
    "FallbackEngine",
]
