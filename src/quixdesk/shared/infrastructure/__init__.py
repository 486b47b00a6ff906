"""
Shared Infrastructure
=====================

Low-level technical concerns shared by every context:
- Structured logging
- Outbound HTTP resilience (circuit breaker)
"""
