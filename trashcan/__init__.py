"""Reversible deletion into a dated trash directory."""
