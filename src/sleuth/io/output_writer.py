from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from sleuth.core.models import Node
from sleuth.io.schemas import graph_to_dict, to_whole
from sleuth.services.forensic_service import ForensicReport


def _out_dir(out_dir: str) -> Path:
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)
    return p


def _write_csv(path: Path, header: Sequence[str], rows: Iterable[Sequence]) -> str:
    with path.open("w", encoding="utf-8", newline="") as f:
        w = csv.writer(f)
        w.writerow(header)
        w.writerows(rows)
    return str(path)


def _membership(report: ForensicReport) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for c in report.clusters:
        for a in c.addresses:
            out.setdefault(a, c.cluster_id)
    return out


def write_graph_json(report: ForensicReport, out_dir: str, filename: str = "graph.json") -> str:
    out_path = _out_dir(out_dir) / filename
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(graph_to_dict(report.graph, report.clusters), f, indent=2)
    return str(out_path)


# -------------------------
# Forensic tables
# -------------------------

def write_forensic_tables(report: ForensicReport, out_dir: str) -> List[str]:
    p = _out_dir(out_dir)
    g = report.graph
    paths = []

    paths.append(_write_csv(
        p / "nodes.csv",
        ["id", "label", "type", "depth", "total_received", "total_sent", "transaction_count", "risk_score", "tags"],
        (
            [n.address, n.label, n.kind.value, "" if n.depth is None else n.depth,
             to_whole(n.total_received), to_whole(n.total_sent), n.transaction_count,
             n.risk_score, ";".join(sorted(n.tags))]
            for n in g.nodes.values()
        ),
    ))

    paths.append(_write_csv(
        p / "edges.csv",
        ["source", "target", "weight", "transaction_count", "direction"],
        (
            [e.source, e.target, to_whole(e.weight), e.transaction_count, e.direction.value]
            for e in g.edges
        ),
    ))

    paths.append(_write_csv(
        p / "transactions.csv",
        ["signature", "timestamp", "from", "to", "amount", "type", "status", "edge_id"],
        (
            [f.signature, f.timestamp, f.from_address, f.to_address, to_whole(f.amount),
             f.transfer_type.value, f.status.value, e.id]
            for e in g.edges
            for f in e.flows
        ),
    ))

    paths.append(_write_csv(
        p / "clusters.csv",
        ["cluster_id", "address_count", "total_volume", "transaction_count", "pattern", "risk_level"],
        (
            [c.cluster_id, len(c.addresses), to_whole(c.total_volume), c.transaction_count,
             c.pattern.value, c.risk_level.value]
            for c in report.clusters
        ),
    ))
    return paths


# -------------------------
# Audit (KYT/KYA) tables + report
# -------------------------

def write_audit_tables(report: ForensicReport, out_dir: str) -> List[str]:
    p = _out_dir(out_dir)
    membership = _membership(report)
    crawled = [n for n in report.graph.nodes.values() if n.depth is not None]

    flows_path = _write_csv(
        p / "flows.csv",
        ["signature", "timestamp", "from", "to", "amount", "depth", "path"],
        (
            [t.flow.signature, t.flow.timestamp, t.flow.from_address, t.flow.to_address,
             to_whole(t.flow.amount), t.depth, " -> ".join(t.path)]
            for t in report.state.flows
        ),
    )
    addresses_path = _write_csv(
        p / "addresses.csv",
        ["address", "total_received", "total_sent", "net_flow", "tx_count", "depth", "is_endpoint", "cluster"],
        (
            [n.address, to_whole(n.total_received), to_whole(n.total_sent), to_whole(n.net_flow),
             n.transaction_count, n.depth, str(n.is_endpoint).lower(), membership.get(n.address, "N/A")]
            for n in crawled
        ),
    )
    return [flows_path, addresses_path]


def write_audit_md(report: ForensicReport, out_dir: str, filename: str = "report.md") -> str:
    """
    KYT/KYA audit narrative for the seed address.
    """
    out_path = _out_dir(out_dir) / filename

    g = report.graph
    meta = g.metadata
    seed = report.state.seed
    target = g.nodes.get(seed) or Node(address=seed)

    def sol(x: int) -> str:
        return f"{to_whole(x)[:-5]} SOL"

    lines = []
    lines.append("# KYT/KYA Audit Report\n\n")
    lines.append(f"- Generated: **{meta.generated_at if meta else ''}**\n")
    lines.append(f"- Target: `{seed}`\n")
    lines.append(f"- Depth: **{report.policy.max_depth}**\n\n")

    lines.append("## Summary\n\n")
    lines.append("| Metric | Value |\n")
    lines.append("|--------|-------|\n")
    lines.append(f"| Total Received | {sol(target.total_received)} |\n")
    lines.append(f"| Total Sent | {sol(target.total_sent)} |\n")
    lines.append(f"| Net Flow | {sol(target.net_flow)} |\n")
    lines.append(f"| Transactions | {target.transaction_count} |\n")
    lines.append(f"| Counterparties | {len(target.counterparties)} |\n")
    lines.append(f"| Addresses Analyzed | {len(report.state.visited)} |\n")
    lines.append(f"| Transaction Flows | {len(report.state.flows)} |\n")
    lines.append(f"| Risk Score | {target.risk_score}/100 |\n\n")

    lines.append("## Clusters\n\n")
    if not report.clusters:
        lines.append("_No clusters met the minimum size._\n\n")
    else:
        for c in report.clusters:
            lines.append(
                f"- **{c.cluster_id}** | {c.pattern.value} | risk {c.risk_level.value} "
                f"| {len(c.addresses)} addresses | {c.transaction_count} tx | {sol(c.total_volume)}\n"
            )
        lines.append("\n")

    lines.append("## Highest Risk Addresses\n\n")
    ranked = sorted(g.nodes.values(), key=lambda n: (n.risk_score, n.volume), reverse=True)[:10]
    if not ranked:
        lines.append("_No addresses scored._\n\n")
    else:
        for n in ranked:
            tags = ", ".join(sorted(n.tags)) or "none"
            lines.append(f"- **{n.risk_score}/100** | {n.address} | tags: {tags}\n")
        lines.append("\n")

    if report.state.failed_fetches:
        lines.append("## Incomplete History\n\n")
        lines.append("These addresses could not be fetched and are shown without history:\n\n")
        for addr, err in report.state.failed_fetches.items():
            lines.append(f"- {addr}: {err}\n")
        lines.append("\n")

    lines.append("## Limitations\n\n")
    lines.append("- Each address contributes one bounded transaction window.\n")
    lines.append("- Crawl fan-out is capped per address and per depth.\n")
    lines.append("- Raw balance records over-approximate multi-party transfers.\n")
    lines.append("- Clusters group addresses by pattern, not by connectivity.\n")

    with out_path.open("w", encoding="utf-8") as f:
        f.writelines(lines)

    return str(out_path)


# -------------------------
# Single address trace
# -------------------------

def write_trace_tables(report: ForensicReport, out_dir: str) -> List[str]:
    p = _out_dir(out_dir)
    seed = report.state.seed
    seed_flows = [t.flow for t in report.state.flows if t.flow.touches(seed)]

    # per counterparty: value the seed sent it, and value it sent the seed
    cps: Dict[str, Node] = {}
    for f in seed_flows:
        other = f.to_address if f.from_address == seed else f.from_address
        if other == seed:
            continue
        cp = cps.setdefault(other, Node(address=other))
        cp.transaction_count += 1
        cp.seen_at(f.timestamp)
        if f.from_address == seed:
            cp.total_received += f.amount
        else:
            cp.total_sent += f.amount

    tx_path = _write_csv(
        p / "transactions.csv",
        ["signature", "timestamp", "from", "to", "amount", "type", "status"],
        (
            [f.signature, f.timestamp, f.from_address, f.to_address, to_whole(f.amount),
             f.transfer_type.value, f.status.value]
            for f in seed_flows
        ),
    )
    cp_path = _write_csv(
        p / "counterparties.csv",
        ["address", "received_from_seed", "sent_to_seed", "transaction_count", "first_seen", "last_seen"],
        (
            [c.address, to_whole(c.total_received), to_whole(c.total_sent), c.transaction_count,
             c.first_seen, c.last_seen]
            for c in sorted(cps.values(), key=lambda c: c.transaction_count, reverse=True)
        ),
    )

    target = report.graph.nodes.get(seed) or Node(address=seed)
    summary = {
        "target_address": seed,
        "total_received": to_whole(target.total_received),
        "total_sent": to_whole(target.total_sent),
        "net_flow": to_whole(target.net_flow),
        "transaction_count": len(seed_flows),
        "counterparties_count": len(cps),
        "first_seen": target.first_seen,
        "last_seen": target.last_seen,
        "generated_at": report.graph.metadata.generated_at if report.graph.metadata else None,
    }
    summary_path = p / "summary.json"
    with summary_path.open("w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2)

    return [tx_path, cp_path, str(summary_path)]


def write_outputs(report: ForensicReport, out_dir: str) -> List[str]:
    mode = report.policy.mode
    if mode == "trace":
        return write_trace_tables(report, out_dir)
    if mode == "audit":
        return [write_audit_md(report, out_dir)] + write_audit_tables(report, out_dir)
    return write_forensic_tables(report, out_dir) + [write_graph_json(report, out_dir)]
