"""Backends for QRM output generation (narrative XHTML)."""

from .narrative import generate_narrative, save_narrative_file

__all__ = ["generate_narrative", "save_narrative_file"]
