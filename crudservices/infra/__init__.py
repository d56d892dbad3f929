"""Infrastructure adapters: database, logging, events and metrics."""
