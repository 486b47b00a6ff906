"""
Analytics Application Layer
===========================

Contains:
- Services: AnalyticsService and the analytics repository interface
- DTOs: dashboard and report models
"""
