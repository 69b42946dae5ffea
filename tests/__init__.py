"""
Crisis Core Tests

Running Tests:
    # Unit and pipeline integration tests
    pytest -v

    # Pipeline integration only
    pytest tests/test_pipeline_integration.py -v

    # Against a running instance (not collected by default)
    pytest tests/e2e/smoke_test_e2e.py -v
"""
