"""
Host discovery for the scan pipeline.

An invoker runs the external tool and hands back its text; the parser
turns that text into DiscoveredDevice records.
"""

from .base import DiscoveryInvoker
from .arp_scan import ArpScanInvoker
from .parser import parse_arp_scan_output

__all__ = [
    "DiscoveryInvoker",
    "ArpScanInvoker",
    "parse_arp_scan_output",
]
