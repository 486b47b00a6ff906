"""Analytics queries."""
