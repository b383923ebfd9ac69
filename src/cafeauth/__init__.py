"""cafe-auth: staff authentication for the cafe point-of-sale."""

__version__ = "0.1.0"
