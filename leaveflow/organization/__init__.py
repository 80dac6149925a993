"""Organizations, members and leave policies (read-only to the leave core)."""
