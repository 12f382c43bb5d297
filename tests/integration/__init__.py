"""
hookgate — integration test package

File: tests/integration/__init__.py
Last updated: 2026-10-19

Purpose
- Test package marker; these tests spawn git and ``python -m hookgate`` as subprocesses.
"""
