"""Core primitives: tokens, record formats, domain syntax, state."""
