"""Sensor fusion filters, an AHRS loop, receiver and mixer bases, telemetry and command packets, and preferences for stabilized vehicles."""

__version__ = "0.1.0"

__all__ = ["__version__"]