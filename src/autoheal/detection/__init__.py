"""Error detection and prioritization."""

from autoheal.detection.detector import DetectionSummary, Detector, Findings
from autoheal.detection.prioritizer import SEVERITY_WEIGHTS, prioritize

__all__ = [
    "DetectionSummary",
    "Detector",
    "Findings",
    "SEVERITY_WEIGHTS",
    "prioritize",
]
