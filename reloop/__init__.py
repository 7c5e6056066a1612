"""
reloop - durable, resumable multi-step tool-calling runs.
"""

__version__ = "0.1.0"
