"""
Accounts Infrastructure Layer
=============================

Contains:
- Models: users table
- Repositories: SQLAlchemy user repository
- Security: bcrypt hashing and JWT access tokens
"""
