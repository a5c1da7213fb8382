"""Core diagram primitives: errors, geometry and the diagram registry."""
