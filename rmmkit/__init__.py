"""rmmkit: Windows administration actions for RMM script runners."""

__version__ = "0.1.0"
