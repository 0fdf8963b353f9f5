"""Shared building blocks for the card configurator.

Leaf modules only: the tabular codec, the card record/schema, I/O helpers,
logging and the exception hierarchy. Nothing in here holds state.
"""
