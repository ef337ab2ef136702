"""Fastform deployer - drives generated apps from AppSpec to staging and production."""

__version__ = "0.1.0"
