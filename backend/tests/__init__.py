"""
Test Suite

This module contains all tests for the Review & Sign-off Engine backend.

Structure:
    tests/
    ├── __init__.py         # This file
    ├── conftest.py         # Pytest fixtures (mongomock database, actors)
    ├── unit/               # Engine, repository and service tests
    └── integration/        # API endpoint tests

To run tests:
    pytest backend/tests/
    pytest backend/tests/unit/
    pytest backend/tests/integration/
"""
