"""
Report rendering.
"""

from .renderer import md_cell, render_review

__all__ = ["md_cell", "render_review"]
