"""Checkout service: stock reservation in front of the order pipeline."""

__version__ = "0.1.0"
