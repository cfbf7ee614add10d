"""
Test helper utilities for DOZE testing.

This module provides reusable generators for synthetic interaction streams.
"""
