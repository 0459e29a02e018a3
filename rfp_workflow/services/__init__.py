"""Application services operating on a database session."""
