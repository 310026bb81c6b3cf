"""Core configuration for sortr."""
