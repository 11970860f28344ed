"""Step handlers, one per step type."""
