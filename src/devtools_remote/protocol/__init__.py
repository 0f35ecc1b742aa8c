"""Protocol layer: wire envelopes and the descriptor-driven API surface."""

from .api import Domain, ProtocolCommand, ProtocolEvent, build_domains, prepare
from .messages import MessageKind, Request, Target, classify, parse_message

__all__ = [
    "Request",
    "Target",
    "MessageKind",
    "classify",
    "parse_message",
    "Domain",
    "ProtocolCommand",
    "ProtocolEvent",
    "build_domains",
    "prepare",
]
