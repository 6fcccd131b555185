"""Atelier command-line interface."""
