"""sugobot - Room chat bot for SUGO live rooms."""

__version__ = "0.1.0"
