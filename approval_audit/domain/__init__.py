"""Domain layer: models, errors, primitives and signing. No I/O."""
