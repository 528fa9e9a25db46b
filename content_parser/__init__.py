"""Content parser - pluggable extraction of items from feeds, pages and social sources."""

__version__ = "0.1.0"
