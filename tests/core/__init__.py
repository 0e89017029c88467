"""
Tests for the Core infrastructure package.

This package contains tests for:
- Exception hierarchy
- Environment loading and validation
- Process singleton lock
"""
