"""
natbridge - diagnose and repair NAT forwarding through a secondary Linux bridge.
"""

__version__ = "1.0.0"
