"""Utility modules for ghui."""
