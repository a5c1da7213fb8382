"""Layout subsystem.

- Layout orchestrator (strategy, scope, dry-run, pin restoration)
- Waypoint pin registry
- Label placement resolver
- Lane order optimizer
- External engine adapters (ELK via elkjs, pure-Python layered fallback)

Submodules are imported explicitly; this package does not re-export them.
"""
