"""
Request handlers: the per-connection state machine and the output
mutation endpoint.
"""

from .dispatcher import ConnectionHandler, HandlerState, Outcome
from .mutation import BitMutation, parse_bit_mutation, apply_mutation

__all__ = [
    "ConnectionHandler",
    "HandlerState",
    "Outcome",
    "BitMutation",
    "parse_bit_mutation",
    "apply_mutation",
]
