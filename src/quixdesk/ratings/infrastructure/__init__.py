"""Rating persistence: employee_ratings table and its repository."""
