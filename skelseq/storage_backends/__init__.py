"""Storage backend implementations (direct filesystem, HTTP bridge)."""
