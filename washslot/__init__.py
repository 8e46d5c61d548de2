"""
washslot - appointment availability and booking for a car-wash.
"""

__version__ = "0.1.0"
