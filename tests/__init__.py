"""Tests for Keychain Provisioner.

Test Structure:
    tests/
    ├── conftest.py          # Shared pytest fixtures
    ├── unit/                # Unit tests (no macOS host needed)
    │   ├── test_config.py
    │   ├── test_credential_store.py
    │   ├── test_execution.py
    │   ├── test_lifecycle.py
    │   ├── test_loader.py
    │   └── ...
    └── mocks/               # Scripted executor and filesystem

Usage:
    # Run all tests
    pytest

    # Run only unit tests
    pytest -m unit

    # Run with verbose output
    pytest -v
"""
