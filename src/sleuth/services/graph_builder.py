from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple

from sleuth.core.dto import RawTransaction, TransactionWindow
from sleuth.core.errors import DataSourceError, SeedFetchError
from sleuth.core.models import CrawlPolicy, Flow, TracedFlow
from sleuth.ports.transaction_history_port import TransactionHistoryPort
from sleuth.services.aggregators import EdgeAggregator, NodeAggregator
from sleuth.services.flow_extractor import extract_flows

log = logging.getLogger("sleuth.graph_builder")

ProgressFn = Callable[[str, dict], None]
Extractor = Callable[[RawTransaction, str, int], List[Flow]]


@dataclass(frozen=True)
class CrawlItem:
    address: str
    depth: int
    path: Tuple[str, ...]


@dataclass
class CrawlState:
    """
    Everything one crawl owns. Passed explicitly through each step; a state
    with items left in `pending` can be handed back to `crawl` to resume.
    """

    seed: str
    visited: Set[str] = field(default_factory=set)
    nodes: NodeAggregator = field(default_factory=NodeAggregator)
    edges: EdgeAggregator = field(default_factory=EdgeAggregator)
    flows: List[TracedFlow] = field(default_factory=list)
    fetch_log: List[str] = field(default_factory=list)

    # address -> provider error; these addresses look like "no history" in the graph
    failed_fetches: Dict[str, str] = field(default_factory=dict)

    # LIFO: the last pushed item is processed next
    pending: List[CrawlItem] = field(default_factory=list)
    seen_flow_keys: Set[Tuple[str, int]] = field(default_factory=set)

    @classmethod
    def start(cls, seed: str) -> "CrawlState":
        return cls(seed=seed, pending=[CrawlItem(seed, 0, (seed,))])

    @property
    def done(self) -> bool:
        return not self.pending


class GraphBuilder:
    """
    Depth-bounded crawl from a seed address into an address graph.

    Strictly sequential: one address is fetched and its whole subtree is
    drained before its next sibling starts, with `call_delay_sec` slept
    before every child item to bound the request rate against the provider.

    Per-depth quotas are checked against nodes already crawled at that
    depth, not reserved up front, so they are soft caps.
    """

    def __init__(
        self,
        history: TransactionHistoryPort,
        extractor: Extractor = extract_flows,
        sleep: Callable[[float], None] = time.sleep,
        on_progress: Optional[ProgressFn] = None,
    ) -> None:
        self.history = history
        self.extractor = extractor
        self._sleep = sleep
        self._on_progress = on_progress

    def crawl(
        self,
        policy: CrawlPolicy,
        state: Optional[CrawlState] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> CrawlState:
        state = state or CrawlState.start(policy.address)
        self._emit("start", {"address": state.seed, "max_depth": policy.max_depth})

        while state.pending:
            if should_stop is not None and should_stop():
                log.info("crawl stopped with %d item(s) pending", len(state.pending))
                break

            item = state.pending.pop()
            if item.depth > 0 and policy.call_delay_sec > 0:
                self._sleep(policy.call_delay_sec)
            self._step(policy, state, item)

        self._emit(
            "done",
            {
                "nodes": len(state.nodes.nodes),
                "edges": len(state.edges.edges),
                "fetched": len(state.fetch_log),
                "failed": len(state.failed_fetches),
            },
        )
        return state

    # -------------------------
    # Crawl step
    # -------------------------

    def _step(self, policy: CrawlPolicy, state: CrawlState, item: CrawlItem) -> None:
        address, depth = item.address, item.depth

        if address in state.visited or depth > policy.max_depth:
            return

        if depth > 0 and state.nodes.count_at_depth(depth) >= policy.quota_for(depth):
            log.debug("quota reached at depth %d, skipping %s", depth, address)
            self._emit("skip", {"address": address, "depth": depth, "reason": "quota"})
            return

        # mark before fetching so no other path can fetch this address again
        state.visited.add(address)
        window = self._fetch(policy, state, item)

        focus = state.nodes.ensure(address, depth=depth)
        next_hops: Dict[str, None] = {}

        for raw in window.records:
            for ordinal, flow in enumerate(self.extractor(raw, address, policy.noise_threshold)):
                if self._is_new(policy, state, flow, ordinal):
                    state.nodes.record_flow(flow)
                    state.edges.add_flow(flow)
                    state.flows.append(TracedFlow(flow=flow, depth=depth, path=item.path))

                if not flow.touches(address):
                    continue
                other = flow.to_address if flow.from_address == address else flow.from_address
                if other == address:
                    continue
                focus.add_counterparty(other)
                if len(next_hops) < policy.next_hop_cap:
                    next_hops.setdefault(other, None)

        self._emit(
            "visit",
            {
                "address": address,
                "depth": depth,
                "queue": len(state.pending),
                "processed": len(state.visited),
                "edges": len(state.edges.edges),
            },
        )

        if depth < policy.max_depth:
            children = list(next_hops)[: policy.branch_cap]
            for candidate in reversed(children):
                state.pending.append(CrawlItem(candidate, depth + 1, item.path + (candidate,)))

    def _fetch(self, policy: CrawlPolicy, state: CrawlState, item: CrawlItem) -> TransactionWindow:
        address = item.address
        state.fetch_log.append(address)
        self._emit("fetch", {"address": address, "depth": item.depth})

        try:
            records = self.history.fetch_transactions(address, policy.window_size)
        except DataSourceError as e:
            if address == state.seed:
                raise SeedFetchError(address, str(e)) from e
            log.warning("fetch failed for %s at depth %d: %s", address, item.depth, e)
            state.failed_fetches[address] = str(e)
            self._emit("error", {"address": address, "message": str(e)})
            return TransactionWindow(address=address, error=str(e))

        self._emit("fetch_done", {"address": address, "count": len(records)})
        return TransactionWindow(address=address, records=list(records))

    @staticmethod
    def _is_new(policy: CrawlPolicy, state: CrawlState, flow: Flow, ordinal: int) -> bool:
        # the same transaction shows up in the window of every address it touches
        if not policy.dedupe_flows or not flow.signature:
            return True
        key = (flow.signature, ordinal)
        if key in state.seen_flow_keys:
            return False
        state.seen_flow_keys.add(key)
        return True

    def _emit(self, event: str, data: dict) -> None:
        if self._on_progress is not None:
            self._on_progress(event, data)
