"""Infrastructure layer for MedRegistry: configuration, settings and logging."""
