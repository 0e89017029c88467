"""
Tests for the Orchestrator package.

This package contains tests for:
- Module registry and dependency resolution
- Progress persistence
- Isolated module execution and timeouts
- Preconditions and script actions
- Menu loop, special actions and CLI startup
"""
