"""Order routing engine: picks the warehouse(s) that fulfill each order."""

__version__ = "1.0.0"
