"""Rating service, repository interface and DTOs."""
