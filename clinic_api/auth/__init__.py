"""
Authentication module for the clinic platform.

This module provides authentication for two scopes:
- Central (platform) users registered in the registry database
- Tenant users stored inside each organization's own database

Both scopes share JWT access tokens and rotating refresh tokens whose
opaque half is stored only as a hash.
"""
