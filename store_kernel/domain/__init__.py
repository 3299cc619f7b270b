"""Domain layer: DTOs and pure validation, no I/O."""
