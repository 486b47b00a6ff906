"""
Accounts Module
===============

Bounded Context for identities and access.

Responsibilities:
- Registration with role assignment and password policy
- Login and bearer access tokens
- Profile edits, profile pictures, password changes
- Employee directory and soft deletion for admins
"""
