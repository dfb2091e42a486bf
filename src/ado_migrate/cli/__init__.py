"""Command line interface for ADO Migration Tool."""

from .main import main

__all__ = ['main']
