from .icmp import ICMPDriver, icmp
from .icmp_handler import IPv4Handler, IPv6Handler, new_protocol_handler
from .icmp_message import EchoMessage, MessageProvider
from .http import HTTPAddress, HTTPDriver, http
from .dummy import DummyDriver, dummy

__all__ = [
    "ICMPDriver",
    "icmp",
    "IPv4Handler",
    "IPv6Handler",
    "new_protocol_handler",
    "EchoMessage",
    "MessageProvider",
    "HTTPAddress",
    "HTTPDriver",
    "http",
    "DummyDriver",
    "dummy",
]
