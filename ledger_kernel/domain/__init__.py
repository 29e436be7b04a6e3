"""Pure domain layer: DTOs, validation, workflow, fiscal calendar, clock."""
