"""
DairyDesk staff dashboard: session authentication layer.
"""

__version__ = "1.0.0"
