"""notetree: a hierarchical document store with dense sibling ordering."""

__version__ = "1.0.0"
