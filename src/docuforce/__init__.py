"""docuforce: keeps doc comments honest."""

__version__ = "0.1.0"
