"""Planning: graph expansion, resolution and stream joins."""

from .combine import KeyedJoin, combine, combine_streams, task_key
from .expander import ExpansionResult, GraphExpander, listing_failure, parse_listing
from .resolver import Resolver, resolution_failure

__all__ = [
    "KeyedJoin",
    "combine",
    "combine_streams",
    "task_key",
    "ExpansionResult",
    "GraphExpander",
    "listing_failure",
    "parse_listing",
    "Resolver",
    "resolution_failure",
]
