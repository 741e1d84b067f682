"""
Database Models

This package defines the persistent and derived data structures for the userdb service.

Key Models:
- base.py: Base SQLAlchemy model with common type definitions
- users.py: The users table and the statements used to create and list users
- health.py: Pool lifecycle states and the health probe result

The ``users`` table carries unique constraints on both ``username`` and ``email``. Violations are surfaced by the
lifecycle manager as conflicts rather than generic storage failures.
"""
