"""Completion candidates for Erlang buffers."""
from .candidates import (
    AggregatedCandidateSet,
    CandidateAggregator,
    CandidateEntry,
    Provenance,
)
from .scanner import BufferContext, PrefixContext

__all__ = [
    "AggregatedCandidateSet",
    "BufferContext",
    "CandidateAggregator",
    "CandidateEntry",
    "PrefixContext",
    "Provenance",
]
