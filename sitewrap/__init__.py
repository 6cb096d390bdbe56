"""Sitewrap: websites as first-class desktop applications."""

__version__ = "0.1.0"
