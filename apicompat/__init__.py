"""API surface compatibility checker.

Compares the public API surface of two library versions and reports
binary- and source-breaking changes.
"""

__version__ = "0.1.0"
