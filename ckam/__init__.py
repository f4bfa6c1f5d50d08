"""Account backend for the CKAM messenger demo."""

__version__ = "0.1.0"
