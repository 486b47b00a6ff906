"""
Analytics Module
================

Read-only reporting over tickets, users, assignments and ratings.

Responsibilities:
- Admin overview with trends and workload
- CSV and JSON report export
- CSR dashboard for employees
- Profile counters and the employee roster
"""
