"""Toolpilot: a tool-calling agent that works inside a local workspace."""

__version__ = "0.1.0"
