"""
userdb Application Layer

This package implements the web application layer for the userdb service, handling HTTP requests and responses
using the aiohttp framework.

Key Components:
- cli.py: Entry point for running the application
- server.py: Web server configuration, startup sequencing and middleware setup
- config.py: Configuration management using Pydantic settings
- metrics.py: Vendor-neutral metrics client
- handlers/: Request handlers for the public and internal endpoints
- util/: Operator utilities for credential and database checks

The application uses several middleware layers:
- Statsd middleware for metrics collection
- Error middleware shaping 404 and 500 responses as JSON
- Sentry middleware for error reporting

It provides the following endpoints:
- GET /api/health
- GET /api/users
- POST /api/users
- GET /internal/alive and GET /internal/ready
"""
