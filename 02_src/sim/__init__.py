"""Demo traffic generator."""

from .sim import ISim, Sim

__all__ = ["ISim", "Sim"]
