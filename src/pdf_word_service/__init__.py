"""
PDF to Word Conversion Service package.

This module provides a FastAPI proxy that converts uploaded PDFs to Word
documents through an external conversion service, plus a Streamlit client
that can also convert locally without the proxy.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
