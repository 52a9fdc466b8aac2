"""Incremental geospatial acquisition of civic issue reports for map viewports."""

__version__ = "0.1.0"
