"""Options flow scanner: chain classification, combos, hedge and sentiment analytics."""

__version__ = "0.4.0"

__all__ = ["__version__"]
