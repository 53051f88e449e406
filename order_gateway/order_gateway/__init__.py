"""Order intake gateway: queues order requests and exposes persisted orders."""

__version__ = "0.1.0"
