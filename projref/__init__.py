"""projref - Swap package references for project references across a .NET workspace."""

__version__ = "0.1.0"
