"""Building blocks of a rate limit service: settings, stats, SRV discovery, TLS and time helpers."""

__version__ = "0.1.0"