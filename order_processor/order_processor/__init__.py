"""Order processor: persists queued orders and fans out notifications."""

__version__ = "0.1.0"
