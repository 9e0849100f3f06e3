"""Feature flag registry, audit log and route gate."""
