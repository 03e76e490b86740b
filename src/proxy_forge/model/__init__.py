"""Data models for proxy-forge."""
