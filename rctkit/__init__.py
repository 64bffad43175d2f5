"""Building blocks for event-driven applications and command-line tools."""

__version__ = "0.1.0"