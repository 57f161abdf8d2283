"""
defect-radar - package root

File: src/defect_radar/__init__.py

Purpose
- Static-findings pipeline: pluggable analyzers, a finding engine, resolution ranking,
  and a real-time monitor that keeps a live set of active findings for watched projects.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
- Keep the public surface small; heavier modules are imported lazily by callers.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
