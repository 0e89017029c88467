"""Test suite for the IoT Control System setup orchestrator."""
