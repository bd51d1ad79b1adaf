"""AAU GPA Calculator bot."""

__version__ = "2.1.0"
