"""storyloom - branching narrative graphs with optimistic persistence sync."""

__version__ = "0.1.0"
