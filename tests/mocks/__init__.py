"""
Centralized mock objects for testing.

This package provides reusable mock factories for connections and message
stores, reducing code duplication across test files.
"""
