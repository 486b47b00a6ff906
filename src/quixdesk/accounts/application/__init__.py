"""
Accounts Application Layer
==========================

Contains:
- Services: AccountService and the user repository interface
- DTOs: request and response models
"""
