"""Message pipeline -- tokenizer, commands and the transport-facing bot."""

from .bot import Bot, InboundMessage, render_outcome
from .tokenizer import join, quote, tokenize

__all__ = [
    "Bot",
    "InboundMessage",
    "join",
    "quote",
    "render_outcome",
    "tokenize",
]
