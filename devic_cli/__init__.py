"""Command-line client for the Devic AI platform."""

__version__ = "0.1.0"
