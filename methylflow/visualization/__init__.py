"""
Visualization module for MethylFlow

This module renders the Figure 5 scatterplots and bar charts and stores
panels A and B as reloadable chart objects.
"""

from .figures import Figure5Plotter, load_chart_object, save_chart_object

__all__ = [
    "Figure5Plotter",
    "load_chart_object",
    "save_chart_object",
]
