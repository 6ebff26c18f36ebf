"""Human task dispatch and completion polling."""

__version__ = "0.1.0"
