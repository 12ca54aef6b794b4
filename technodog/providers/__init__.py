"""Concrete adapters for the interfaces in :mod:`technodog.interfaces`."""
