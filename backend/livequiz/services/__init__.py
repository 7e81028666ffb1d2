"""Live quiz services used by the HTTP blueprints and socket handlers."""
