"""Same-origin HTTP relay for browser-side code."""

__version__ = "1.0.0"
