"""
Tenant (organization) management for the clinic platform.

This module provides:
- Deterministic naming of tenant databases, roles and secrets
- The central tenant registry
- A TTL cache resolving path segments to known tenants
- Database and secret provisioning with saga-style rollback
- Connections to per-tenant databases
"""
