"""
Family Calendar: reconciliation of family events with linked external calendars.
"""

__version__ = "0.1.0"
