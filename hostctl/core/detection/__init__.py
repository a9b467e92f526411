"""
Detection: probe chains, per-software detectors and the result cache.

Detectors READ host state but never WRITE it.
"""

from hostctl.core.detection.cache import DescriptorCache
from hostctl.core.detection.detectors import SoftwareDetector, builtin_detectors, detect_all
from hostctl.core.detection.probes import (
    Probe,
    ProbeChain,
    ProbeOutcome,
    any_line_in,
    contains,
    equals,
    nonempty,
    nonzero_count,
)

__all__ = [
    "DescriptorCache",
    "Probe",
    "ProbeChain",
    "ProbeOutcome",
    "SoftwareDetector",
    "any_line_in",
    "builtin_detectors",
    "contains",
    "detect_all",
    "equals",
    "nonempty",
    "nonzero_count",
]
