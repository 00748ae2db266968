"""apscalc: advanced cannon shell configuration search."""

__version__ = "0.1.0"
