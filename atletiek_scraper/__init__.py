"""Scraper for the atletiek.nu athletics competition website."""

__version__ = "0.1.0"
