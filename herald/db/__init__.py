"""PostgreSQL persistence for the avatar index."""
