"""Writing parsed structures to disk under a sandbox root."""

from __future__ import annotations

from nexus_scaffold.materialize.materializer import FileMaterializer

__all__ = ["FileMaterializer"]
