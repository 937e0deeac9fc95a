# site_migrate/__init__.py
"""
site_migrate package initializer.
Defines the package version and exposes the CLI.
"""
__version__ = "0.1.0"

# Expose CLI entry point; ``site_migrate.cli`` stays the module
from .cli import cli as main_cli  # noqa: E402
