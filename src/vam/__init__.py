"""
VAM API - local session proxy for the VRC Avatar Manager desktop app.
"""

__version__ = "0.1.0"
