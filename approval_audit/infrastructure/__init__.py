"""Infrastructure layer: stubs, observability and monitoring adapters."""
