"""Infrastructure layer — SQLite store, repositories, optimistic writes."""
