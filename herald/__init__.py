"""Herald — persona message delivery for chat platforms."""

__version__ = "0.1.0"
