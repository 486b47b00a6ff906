"""Assistant service and DTOs."""
