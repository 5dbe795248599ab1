"""
PR Journal Sync
===============

Summarizes a user's GitHub pull requests and files them as entries in an
external work journal.
"""

__version__ = "0.1.0"
