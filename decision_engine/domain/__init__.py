"""Domain layer: value objects, entities and pure decision services."""
