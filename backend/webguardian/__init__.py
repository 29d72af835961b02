"""WebGuardian - website monitoring and alerting service."""

__version__ = "1.0.0"
