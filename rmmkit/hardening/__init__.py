"""Endpoint hardening and reset."""

from .baseline import HARDENING_BASELINE, HardeningBaseline, RegistrySetting, reset_network_stack

__all__ = ["HARDENING_BASELINE", "HardeningBaseline", "RegistrySetting", "reset_network_stack"]
