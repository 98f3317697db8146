"""League standings and season-transition engine."""

__version__ = "1.0.0"
