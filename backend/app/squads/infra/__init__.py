"""Infrastructure adapters for the squads domain."""
