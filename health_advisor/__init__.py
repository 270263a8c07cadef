"""Health Advisor conversation service."""

__version__ = "0.1.0"
