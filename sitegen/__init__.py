"""
Static JSON site-data export.

Fetches dataset records and writes the JSON tree a static frontend reads:
item documents, paginated listings, related entities and search shards.
"""

__version__ = "1.0.0"
