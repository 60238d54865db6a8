"""Schemas shared between the Anuncios server and its clients."""
