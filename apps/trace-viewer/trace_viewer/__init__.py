"""Renders recorded traces as self-contained HTML viewers."""
