"""
Secrets Backend Integration

This package resolves database credentials, preferring HashiCorp Vault and falling back on static configuration.

Key Components:
- client.py: AppRole login and KV v2 secret reads over aiohttp
- credentials.py: Credential source selection and the fallback policy

Resolution happens once at startup. Vault is never a hard dependency: any failure on the Vault path is logged as a
warning and the static credentials are used instead. Only the absence of every usable source is fatal.
"""
