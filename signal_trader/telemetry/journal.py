"""Trade journal: append-only decision, trade and risk records.

The control loop writes to the journal and never reads from it. Queries,
statistics, export and search serve the API and the CLI summary.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections import Counter, defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Literal, Mapping, Sequence

import pandas as pd

from signal_trader.core.models import IndicatorSnapshot

logger = logging.getLogger(__name__)

RecordKind = Literal["trades", "decisions", "risk"]
ExportFormat = Literal["json", "csv"]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    millis = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"{millis}_{uuid.uuid4().hex[:9]}"


@dataclass
class DecisionRecord:
    id: str
    symbol: str
    strategy: str
    market_condition: str
    indicators: dict[str, float]
    decision: str
    confidence: float
    reasons: list[str]
    processing_time: float
    timestamp: str = field(default_factory=_now_iso)


@dataclass
class TradeRecord:
    id: str
    symbol: str
    action: str
    price: float
    size: float
    reason: str
    confidence: float
    strategy: str
    is_dry_run: bool
    status: str
    order_id: str | None = None
    fees: float | None = None
    slippage: float | None = None
    profit: float | None = None
    metadata: dict[str, Any] | None = None
    timestamp: str = field(default_factory=_now_iso)


@dataclass
class RiskRecord:
    id: str
    action: str
    current_drawdown: float
    daily_loss: float
    position_size: float
    risk_level: str
    approved: bool
    reason: str
    timestamp: str = field(default_factory=_now_iso)


_RECORD_TYPES = {
    "decisions": DecisionRecord,
    "trades": TradeRecord,
    "risk": RiskRecord,
}


class TradeJournal:
    """In-memory journal with optional JSON-lines persistence.

    Attributes:
        max_records: Per-kind retention limit; oldest records are dropped
        path: JSON-lines file records are appended to, if any
    """

    def __init__(self, max_records: int = 10000, path: Path | str | None = None) -> None:
        if max_records <= 0:
            raise ValueError(f"max_records must be positive, got {max_records}")
        self.max_records = max_records
        self.path = Path(path) if path is not None else None
        self._records: dict[str, list[Any]] = {kind: [] for kind in _RECORD_TYPES}
        self._lock = threading.Lock()

        if self.path is not None:
            self._load()

    # ------------------------------------------------------------------
    # Telemetry entry points
    # ------------------------------------------------------------------

    def record_decision(
        self,
        *,
        symbol: str,
        strategy: str,
        market_condition: str,
        indicators: IndicatorSnapshot,
        decision: str,
        confidence: float,
        reasons: Sequence[str],
        processing_time: float,
    ) -> str:
        record = DecisionRecord(
            id=_new_id(),
            symbol=symbol,
            strategy=strategy,
            market_condition=market_condition,
            indicators={k: float(v) for k, v in indicators.items() if isinstance(v, (int, float))},
            decision=decision,
            confidence=confidence,
            reasons=list(reasons),
            processing_time=processing_time,
        )
        self._append("decisions", record)
        logger.debug("[DECISION] %s %s - %s (%.1f%%)", strategy, symbol, decision, confidence)
        return record.id

    def record_trade(
        self,
        *,
        symbol: str,
        action: str,
        price: float,
        size: float,
        reason: str,
        confidence: float,
        strategy: str,
        is_dry_run: bool,
        status: str,
        order_id: str | None = None,
        fees: float | None = None,
        slippage: float | None = None,
        profit: float | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> str:
        record = TradeRecord(
            id=_new_id(),
            symbol=symbol,
            action=action,
            price=price,
            size=size,
            reason=reason,
            confidence=confidence,
            strategy=strategy,
            is_dry_run=is_dry_run,
            status=status,
            order_id=order_id,
            fees=fees,
            slippage=slippage,
            profit=profit,
            metadata=dict(metadata) if metadata else None,
        )
        self._append("trades", record)
        prefix = "[DRY_RUN]" if is_dry_run else "[LIVE]"
        logger.info("%s [TRADE] %s %s @ %.2f (%s)", prefix, action, symbol, price, status)
        return record.id

    def record_risk(
        self,
        *,
        action: str,
        current_drawdown: float,
        daily_loss: float,
        position_size: float,
        risk_level: str,
        approved: bool,
        reason: str,
    ) -> str:
        record = RiskRecord(
            id=_new_id(),
            action=action,
            current_drawdown=current_drawdown,
            daily_loss=daily_loss,
            position_size=position_size,
            risk_level=risk_level,
            approved=approved,
            reason=reason,
        )
        self._append("risk", record)
        logger.debug("[RISK] %s %s - %s", "approved" if approved else "rejected", action, reason)
        return record.id

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_trades(
        self,
        *,
        symbol: str | None = None,
        strategy: str | None = None,
        action: str | None = None,
        status: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[TradeRecord]:
        """Return trade records matching every given filter, newest first."""
        with self._lock:
            records = list(self._records["trades"])

        if symbol:
            records = [r for r in records if r.symbol == symbol]
        if strategy:
            records = [r for r in records if r.strategy == strategy]
        if action:
            records = [r for r in records if r.action == action]
        if status:
            records = [r for r in records if r.status == status]
        if start:
            records = [r for r in records if datetime.fromisoformat(r.timestamp) >= start]
        if end:
            records = [r for r in records if datetime.fromisoformat(r.timestamp) <= end]

        records.sort(key=lambda r: r.timestamp, reverse=True)
        return records[:limit] if limit else records

    def get_decisions(
        self,
        *,
        symbol: str | None = None,
        strategy: str | None = None,
        limit: int | None = None,
    ) -> list[DecisionRecord]:
        with self._lock:
            records = list(self._records["decisions"])
        if symbol:
            records = [r for r in records if r.symbol == symbol]
        if strategy:
            records = [r for r in records if r.strategy == strategy]
        records.sort(key=lambda r: r.timestamp, reverse=True)
        return records[:limit] if limit else records

    def get_risk_checks(
        self,
        *,
        action: str | None = None,
        approved: bool | None = None,
        limit: int | None = None,
    ) -> list[RiskRecord]:
        with self._lock:
            records = list(self._records["risk"])
        if action:
            records = [r for r in records if r.action == action]
        if approved is not None:
            records = [r for r in records if r.approved == approved]
        records.sort(key=lambda r: r.timestamp, reverse=True)
        return records[:limit] if limit else records

    def records(self, kind: RecordKind) -> list[Any]:
        """All records of ``kind`` in insertion order."""
        if kind not in _RECORD_TYPES:
            raise ValueError(f"Unknown record kind: {kind}")
        with self._lock:
            return list(self._records[kind])

    def statistics(self) -> dict[str, Any]:
        """Aggregate trade, strategy, risk and performance figures.

        A trade counts as successful when it is FILLED or SIMULATED with a
        positive profit.
        """
        with self._lock:
            trades = list(self._records["trades"])
            decisions = list(self._records["decisions"])
            risk = list(self._records["risk"])

        def _successful(record: TradeRecord) -> bool:
            return record.status in ("FILLED", "SIMULATED") and (record.profit or 0.0) > 0

        total = len(trades)
        successful = sum(1 for r in trades if _successful(r))
        failed = sum(1 for r in trades if r.status in ("FAILED", "CANCELLED"))
        pending = sum(1 for r in trades if r.status == "PENDING")

        per_strategy: dict[str, dict[str, float]] = defaultdict(
            lambda: {"trades": 0, "successful": 0, "total_confidence": 0.0}
        )
        for record in trades:
            bucket = per_strategy[record.strategy]
            bucket["trades"] += 1
            bucket["total_confidence"] += record.confidence
            if _successful(record):
                bucket["successful"] += 1

        strategies = {
            name: {
                "trades": int(data["trades"]),
                "success_rate": data["successful"] / data["trades"] * 100,
                "avg_confidence": data["total_confidence"] / data["trades"],
            }
            for name, data in per_strategy.items()
        }

        approved = sum(1 for r in risk if r.approved)
        total_profit = sum(r.profit or 0.0 for r in trades)
        total_fees = sum(r.fees or 0.0 for r in trades)
        avg_processing = (
            sum(r.processing_time for r in decisions) / len(decisions) if decisions else 0.0
        )

        return {
            "trades": {
                "total": total,
                "successful": successful,
                "failed": failed,
                "pending": pending,
                "success_rate": successful / total * 100 if total else 0.0,
            },
            "strategies": strategies,
            "risk": {
                "total_checks": len(risk),
                "approved_checks": approved,
                "rejected_checks": len(risk) - approved,
                "approval_rate": approved / len(risk) * 100 if risk else 0.0,
            },
            "performance": {
                "avg_processing_time": avg_processing,
                "total_profit": total_profit,
                "total_fees": total_fees,
                "net_profit": total_profit - total_fees,
            },
        }

    def analyze_patterns(self, top: int = 5) -> dict[str, Any]:
        """Most active/profitable strategy, common failure reasons, peak hours."""
        with self._lock:
            trades = list(self._records["trades"])
            decisions = list(self._records["decisions"])

        activity = Counter(r.strategy for r in trades)
        profit_by_strategy: Counter[str] = Counter()
        for record in trades:
            if record.profit:
                profit_by_strategy[record.strategy] += record.profit
        failures = Counter(r.reason for r in trades if r.status in ("FAILED", "CANCELLED"))
        hours = Counter(datetime.fromisoformat(r.timestamp).hour for r in trades)

        return {
            "most_active_strategy": activity.most_common(1)[0][0] if activity else "none",
            "most_profitable_strategy": (
                profit_by_strategy.most_common(1)[0][0] if profit_by_strategy else "none"
            ),
            "common_failure_reasons": [reason for reason, _ in failures.most_common(top)],
            "peak_trading_hours": [hour for hour, _ in hours.most_common(3)],
            "avg_decision_time": (
                sum(r.processing_time for r in decisions) / len(decisions) if decisions else 0.0
            ),
        }

    def search(self, query: str, kind: RecordKind = "trades") -> list[Any]:
        """Case-insensitive substring search over the JSON form of each record."""
        needle = query.lower()
        return [
            record
            for record in self.records(kind)
            if needle in json.dumps(asdict(record), default=str).lower()
        ]

    # ------------------------------------------------------------------
    # Export and retention
    # ------------------------------------------------------------------

    def export(self, kind: RecordKind | Literal["all"] = "all", fmt: ExportFormat = "json") -> str:
        """Serialize records to JSON or CSV text.

        CSV export of ``all`` concatenates one section per kind, each headed
        by ``=== KIND ===``.
        """
        kinds = list(_RECORD_TYPES) if kind == "all" else [kind]
        data = {name: [asdict(record) for record in self.records(name)] for name in kinds}

        if fmt == "json":
            payload: Any = data if kind == "all" else data[kind]
            return json.dumps(payload, indent=2, default=str)
        if fmt != "csv":
            raise ValueError(f"Unsupported export format: {fmt}")

        if kind != "all":
            return self._to_csv(data[kind])
        return "\n\n".join(
            f"=== {name.upper()} ===\n{self._to_csv(rows)}" for name, rows in data.items()
        )

    @staticmethod
    def _to_csv(rows: list[dict[str, Any]]) -> str:
        if not rows:
            return ""
        df = pd.DataFrame(rows)
        for column in df.columns:
            if df[column].map(lambda v: isinstance(v, (dict, list))).any():
                df[column] = df[column].map(lambda v: json.dumps(v) if isinstance(v, (dict, list)) else v)
        return df.to_csv(index=False)

    def clear_older_than(self, days: int = 30) -> dict[str, int]:
        """Drop records older than ``days`` days.

        Returns:
            Number of records removed per kind
        """
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        removed: dict[str, int] = {}
        with self._lock:
            for kind, records in self._records.items():
                kept = [r for r in records if datetime.fromisoformat(r.timestamp) > cutoff]
                removed[kind] = len(records) - len(kept)
                self._records[kind] = kept
            if self.path is not None:
                self._rewrite_locked()
        return removed

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _append(self, kind: str, record: Any) -> None:
        with self._lock:
            records = self._records[kind]
            records.append(record)
            if len(records) > self.max_records:
                del records[: len(records) - self.max_records]
            if self.path is not None:
                try:
                    with self.path.open("a", encoding="utf-8") as f:
                        f.write(json.dumps({"kind": kind, "record": asdict(record)}, default=str) + "\n")
                except OSError as e:
                    logger.warning("Failed to persist %s record to %s: %s", kind, self.path, e)

    def _rewrite_locked(self) -> None:
        assert self.path is not None
        try:
            with self.path.open("w", encoding="utf-8") as f:
                for kind, records in self._records.items():
                    for record in records:
                        f.write(json.dumps({"kind": kind, "record": asdict(record)}, default=str) + "\n")
        except OSError as e:
            logger.warning("Failed to rewrite journal %s: %s", self.path, e)

    def _load(self) -> None:
        assert self.path is not None
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            return

        loaded = 0
        with self.path.open("r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                    kind = entry["kind"]
                    record = _RECORD_TYPES[kind](**entry["record"])
                except (json.JSONDecodeError, KeyError, TypeError) as e:
                    logger.warning("Skipping malformed journal line %d in %s: %s", line_no, self.path, e)
                    continue
                self._records[kind].append(record)
                loaded += 1

        for kind, records in self._records.items():
            if len(records) > self.max_records:
                self._records[kind] = records[-self.max_records:]
        logger.info("Loaded %d journal records from %s", loaded, self.path)


__all__ = [
    "DecisionRecord",
    "TradeRecord",
    "RiskRecord",
    "TradeJournal",
    "RecordKind",
]
