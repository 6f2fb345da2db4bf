"""
----------------
ndstore.metadata
----------------

Package metadata.
"""

version = '0.1.0'
