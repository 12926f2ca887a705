"""
Role-based access control.

Provides:
- The permission catalog and its sync from capability declarations
- Role-to-permission defaults and direct per-user grants
- Ability checks with per-model policies
- JWT authentication for API clients
"""
