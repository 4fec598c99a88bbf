"""autoheal: autonomous error healing and decision scoring."""

__version__ = "0.4.0"
