"""Pattern confidence learning."""

from autoheal.learning.confidence import ConfidenceLearner, ConfidenceUpdate

__all__ = ["ConfidenceLearner", "ConfidenceUpdate"]
