"""Operator command-line interface (``python -m technodog.cli``)."""
