"""
CLI tool for turning natural language into a single shell command using a local Ollama server.

This package asks a local large language model for one shell command matching the user's
request, shows the suggestion, and runs it through the host shell only after the user
confirms it.
"""

__version__ = "0.1.0"
