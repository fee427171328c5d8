from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


RawTransaction = Dict[str, Any]


@dataclass(frozen=True)
class TransactionWindow:
    """
    One bounded slice of an address' history as returned by the provider.

    `error` is set when the fetch failed; an empty `records` list with no
    error means the address genuinely has no (more) history.
    """

    address: str
    records: List[RawTransaction] = field(default_factory=list)
    error: Optional[str] = None
