"""
Test suite for dare-schema.

Unit tests run against an in-memory stand-in for the PostgreSQL catalog
(see conftest.py) and need no database.
"""
