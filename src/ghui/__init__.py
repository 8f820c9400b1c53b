"""
ghui - terminal client for GitHub pull requests and their CI results.
"""

__version__ = "0.4.0"

__all__ = ["__version__"]
