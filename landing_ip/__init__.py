"""Landing-IP reconnaissance service."""

__version__ = "1.0.0"
