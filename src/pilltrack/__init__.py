"""pilltrack: medication inventory, intake history and supply forecast."""

__version__ = "0.1.0"
