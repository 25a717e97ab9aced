"""profdump - resolve and render dictionary-encoded profiling records."""

__version__ = "0.1.0"
