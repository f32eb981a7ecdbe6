"""
Test suite for the Campaign Sheet backend.

Run all tests: pytest
Run with coverage: pytest --cov=. --cov-report=html
Run specific file: pytest tests/unit/test_change_tracker.py -v
"""
