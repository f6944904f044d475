"""
Utility modules for Taqvo Community.

This package contains utility functions used throughout the application:
- logging: Logging configuration and utilities
- retry: Retry configuration for gateway reads
- validation: Parsing and validation helpers for remote rows and user input
"""
