"""Portfolio tracker backend: goals, holdings, and cached market quotes."""

__version__ = "0.1.0"
