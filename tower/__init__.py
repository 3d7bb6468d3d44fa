"""Tower authentication service: credentials, token pairs, and the bearer gate."""

__version__ = "0.3.0"
