"""
Salonbook - availability and booking-conflict engine for appointment businesses.
"""

__version__ = "0.1.0"
