"""Core domain: models, command builders, detection, services, sections."""
