"""Test suite for the Evistat statistics engine.

This package contains unit tests for the meta-analysis, power and
clinical calculators, and integration tests for the web API and CLI.
To run the tests, execute `pytest` from the project root.
"""
