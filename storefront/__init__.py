"""Client-side commerce state engine: cart, favorites and checkout."""

__version__ = "0.1.0"
