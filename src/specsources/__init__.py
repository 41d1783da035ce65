"""Repository management layer for package-specification sources."""

from __future__ import annotations

__version__ = "0.1.0"
