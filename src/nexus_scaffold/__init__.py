"""
nexus-scaffold — package root

File: src/nexus_scaffold/__init__.py
Last updated: 2026-10-18

Purpose
- Turn free-form generated text describing a multi-file project into a validated
  file tree, then package it as a ZIP archive or write it under a sandbox root.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
