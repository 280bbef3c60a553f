"""Core models, errors, protocols, and configuration shared across the monitor."""
