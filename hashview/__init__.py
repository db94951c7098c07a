"""
HashView - location-verified review submission service
"""
__version__ = "1.0.0"
