"""Chat persistence: messages table and its SQLAlchemy repository."""
