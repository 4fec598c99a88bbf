"""Core models, configuration, logging and errors for autoheal."""
