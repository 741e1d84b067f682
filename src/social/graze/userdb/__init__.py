"""
userdb - User Directory Service

This module implements a small HTTP service that stores users in PostgreSQL. Database credentials are bootstrapped
at startup, either from HashiCorp Vault through an AppRole login or from static environment configuration.

Key Components:
- app: Web application layer with request handlers and server configuration
- vault: Vault client and the credential resolution policy
- database: Connection pool ownership, schema bootstrap and user storage
- model: Database models and derived health data

Startup Sequence:
1. Select the credential source from settings (Vault when fully configured, static otherwise)
2. Resolve credentials once; Vault failures fall back to static credentials with a warning
3. Build the bounded connection pool
4. Create the users table if absent
5. Start serving requests

Missing credentials or a failed schema bootstrap abort startup with a non-zero exit status.
"""
