"""
hookgate — modular commit-gate orchestrator

File: src/hookgate/__init__.py
Last updated: 2026-10-19

Purpose
- Package root. Discovers ordered check executables in a hooks directory, runs
  them one at a time against the staged changes, and turns their exit codes
  into a single accept/reject verdict for the commit.

Import boundary rules
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
