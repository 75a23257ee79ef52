"""Utility functions for the reliable submission protocol."""
