"""
Core business logic

This package holds everything that changes pool state:
- State machines: the only place pool/round status changes
- Managers: lifecycle of registries, pools and rounds
- Locks: row-level concurrency control
- Exceptions: engine error hierarchy
"""
