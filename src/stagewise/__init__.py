"""Stage-gated workspace engine for spec-driven development workflows."""
