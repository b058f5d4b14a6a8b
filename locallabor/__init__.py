"""Local Labor: job posting, discovery and applications for a local labor marketplace."""

__version__ = "0.1.0"
