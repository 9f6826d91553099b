"""Client-side session persistence."""
