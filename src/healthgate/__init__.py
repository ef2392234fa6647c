"""healthgate: concurrent service health aggregation behind a small gateway."""

__version__ = "0.1.0"
