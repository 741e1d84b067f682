"""
Database Lifecycle

This package owns the connection pool and everything that touches the users table at runtime.

Key Components:
- lifecycle.py: Pool construction, idempotent schema bootstrap, health probes and the create/list operations

Storage errors are translated into ConflictError (unique violations) and StorageError (everything else) so request
handlers can map them to distinguishable responses.
"""
