"""MediBook - appointment booking backend with an availability engine."""

__version__ = "0.1.0"
