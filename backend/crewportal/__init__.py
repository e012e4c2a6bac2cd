"""Crew timesheet portal backend."""

from crewportal import logging_config  # noqa: F401  registers the TRACE level

__version__ = "0.1.0"
