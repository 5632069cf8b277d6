"""rosterguard: post-generation validation of broker shift rosters."""

__version__ = "0.1.0"
