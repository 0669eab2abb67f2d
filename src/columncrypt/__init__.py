"""
columncrypt: Resumable, batch-at-a-time encryption of sensitive table columns.

Walks relational tables in primary-key order, encrypts configured columns
in place, and records a durable cursor after every batch so an interrupted
pass picks up where it stopped.
"""

__version__ = "0.1.0"
