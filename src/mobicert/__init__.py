"""
mobicert — progressive certification for generated mobile app projects.

Runs increasingly expensive validation tiers against a generated project directory,
normalizes tool output into structured error records, drives a bounded automated repair
loop on failure, and grades the project gold, silver, bronze or failed.

Importing the package has no side effects (no config loading, no logging setup).
"""

__version__ = "0.4.0"

__all__ = ["__version__"]
