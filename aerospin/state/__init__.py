"""Device state model, status parsing and reconciliation."""
