"""
Core Module Package.

This package contains the infrastructure components
the orchestrator depends on.

Components:
- constants: System-wide constants
- exceptions: Custom exception hierarchy
- environment: Required environment configuration
- instance_lock: Process singleton lock
"""
