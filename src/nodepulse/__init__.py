"""nodepulse - blockchain node telemetry collector and hub."""

__version__ = "0.4.0"
