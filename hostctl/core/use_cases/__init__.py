"""Use cases: multi-step operations composed from services and detection."""
