"""Backend for the resume optimization service."""

__version__ = "0.1.0"
