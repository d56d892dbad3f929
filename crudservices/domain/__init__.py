"""Domain layer: status objects and the generic CRUD dispatcher."""
