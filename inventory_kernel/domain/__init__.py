"""Domain layer: clock, enums and DTOs.  No database access."""
