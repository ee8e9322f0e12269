"""Validate and inspect inference engine manifests, manage engine configuration, and chat with a local server."""

__version__ = "0.1.0"