"""Anonymous single-use mailbox backend."""

__version__ = "1.0.0"
