"""
Sheet Command Gateway

HTTP service that turns natural-language spreadsheet commands into structured
operation descriptors via an LLM, and manages auth keys and usage statistics.
"""

__version__ = "1.0.0"
