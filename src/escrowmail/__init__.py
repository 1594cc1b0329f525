"""
escrowmail - escrow-backed transfers to recipients identified by email.
"""

__version__ = "0.1.0"
