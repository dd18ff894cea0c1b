"""Infrastructure modules for Claims Suite.

This package contains low-level infrastructure concerns:
- Off-loop execution of blocking I/O
- Reasoning-provider retry classification
- PHI-safe logging helpers
"""
