"""DNS enforcement."""

from .enforcer import DnsEnforcer, DnsReport, flush_dns_cache

__all__ = ["DnsEnforcer", "DnsReport", "flush_dns_cache"]
