"""
RBAC (Role-Based Access Control) application.

Provides access control for the notes hub with:
- User accounts with username or email login
- Roles and permissions scoped by guard name
- Direct permission grants alongside role grants
- Protected master/admin/member roles and a root user
- Security audit logging of denials
"""
