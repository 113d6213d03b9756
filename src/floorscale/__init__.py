"""
FloorScale - measure distances on floor plan images.

Load a raster floor plan, calibrate it by drawing a reference line of
known length, then draw measurement lines that are converted to real
world distances.
"""

from floorscale.version import __version__, __version_display__

__all__ = ["__version__", "__version_display__"]
