"""Harvest vendor part catalogs and their PDF documents."""

__version__ = "0.2.0"
