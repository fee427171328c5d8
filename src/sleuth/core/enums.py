from __future__ import annotations

from enum import Enum


class TransferType(str, Enum):
    NATIVE = "native"
    TOKEN = "token"


class FlowStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class EdgeDirection(str, Enum):
    UNIDIRECTIONAL = "unidirectional"
    BIDIRECTIONAL = "bidirectional"


class ClusterPattern(str, Enum):
    ACCUMULATION = "accumulation"
    DISTRIBUTION = "distribution"
    MIXING = "mixing"
    NORMAL = "normal"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class NodeKind(str, Enum):
    TARGET = "target"
    COUNTERPARTY = "counterparty"


class RiskTag(str, Enum):
    HIGH_RISK = "HIGH_RISK"
    HIGH_ACTIVITY = "HIGH_ACTIVITY"
    IMBALANCED_FLOW = "IMBALANCED_FLOW"
    CLUSTER_MEMBER = "CLUSTER_MEMBER"
