"""Parley - Discord channel adapter for multi-channel chatbot platforms."""
__version__ = "0.1.0"
