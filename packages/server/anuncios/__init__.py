"""Anuncios — subscription-gated listing collections."""

__version__ = "0.1.0"
