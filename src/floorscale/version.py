"""Version information for FloorScale."""

__version__ = "0.3.0"
__version_display__ = f"FloorScale V{__version__}"
