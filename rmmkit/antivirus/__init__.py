"""Antivirus update checks."""

from .defender import AntivirusProduct, DefenderChecker, DefenderStatus

__all__ = ["AntivirusProduct", "DefenderChecker", "DefenderStatus"]
