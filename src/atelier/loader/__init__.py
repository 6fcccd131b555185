"""Atelier YAML loader - suite parsing and validation."""

from atelier.loader.suite import Suite, SuiteError, load_suite, parse_suite

__all__ = ["Suite", "SuiteError", "load_suite", "parse_suite"]
