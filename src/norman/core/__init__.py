"""Core machinery for norman: modules, state, packaging, registry proxy, sync."""
