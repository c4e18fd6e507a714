"""Rule execution ledger repository: idempotency checks, inserts and metrics."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskpool.application.dtos.workflow import (
    RuleExecutionResult,
    RuleMetrics,
    WorkflowRuleMetrics,
)
from taskpool.infrastructure.persistence.models.workflow import Rule, RuleExecution
from taskpool.infrastructure.persistence.repositories.base import BaseRepository
from taskpool.shared.enums import RuleOutcome
from taskpool.shared.telemetry.logging import get_logger
from taskpool.shared.utils import ensure_utc

logger = get_logger(__name__)


def _to_result(e: RuleExecution) -> RuleExecutionResult:
    """Map RuleExecution ORM to RuleExecutionResult DTO."""
    return RuleExecutionResult(
        id=e.id,
        rule_id=e.rule_id,
        origin_type=e.origin_type,
        origin_id=e.origin_id,
        outcome=e.outcome,
        suppression_reason=e.suppression_reason,
        user_id=e.user_id,
        created_at=ensure_utc(e.created_at),
    )


def _window(since: datetime | None, until: datetime | None) -> list[Any]:
    """created_at >= since AND created_at < until (either bound optional)."""
    clauses: list[Any] = []
    if since is not None:
        clauses.append(RuleExecution.created_at >= since)
    if until is not None:
        clauses.append(RuleExecution.created_at < until)
    return clauses


def _outcome_counts() -> list[Any]:
    return [
        func.count(RuleExecution.id).label("evaluated_count"),
        func.count(RuleExecution.id)
        .filter(RuleExecution.outcome == RuleOutcome.APPLIED.value)
        .label("applied_count"),
        func.count(RuleExecution.id)
        .filter(RuleExecution.outcome == RuleOutcome.SUPPRESSED.value)
        .label("suppressed_count"),
    ]


class RuleExecutionRepository(BaseRepository[RuleExecution]):
    """Append-only ledger repository. Implements IRuleExecutionRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, RuleExecution)

    async def exists(self, rule_id: str, origin_type: str, origin_id: str) -> bool:
        result = await self.db.execute(
            select(RuleExecution.id).where(
                RuleExecution.rule_id == rule_id,
                RuleExecution.origin_type == origin_type,
                RuleExecution.origin_id == origin_id,
            )
        )
        return result.first() is not None

    async def insert(
        self,
        rule_id: str,
        origin_type: str,
        origin_id: str,
        outcome: str,
        suppression_reason: str | None,
        user_id: str | None,
    ) -> RuleExecutionResult:
        """Insert a ledger row; IntegrityError propagates on a duplicate origin."""
        execution = RuleExecution(
            rule_id=rule_id,
            origin_type=origin_type,
            origin_id=origin_id,
            outcome=outcome,
            suppression_reason=suppression_reason,
            user_id=user_id,
        )
        created = await self.create(execution)
        return _to_result(created)

    async def record(
        self,
        rule_id: str,
        origin_type: str,
        origin_id: str,
        outcome: str,
        suppression_reason: str | None,
        user_id: str | None,
    ) -> RuleExecutionResult | None:
        """Insert in a savepoint; a row already present for the origin wins."""
        try:
            async with self.db.begin_nested():
                return await self.insert(
                    rule_id, origin_type, origin_id, outcome, suppression_reason, user_id
                )
        except IntegrityError:
            logger.debug(
                "Ledger row already present: rule=%s origin=%s:%s",
                rule_id,
                origin_type,
                origin_id,
            )
            return None

    async def list_for_rule(
        self,
        rule_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[RuleExecutionResult]:
        result = await self.db.execute(
            select(RuleExecution)
            .where(RuleExecution.rule_id == rule_id, *_window(since, until))
            .order_by(RuleExecution.created_at.desc(), RuleExecution.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return [_to_result(e) for e in result.scalars().all()]

    async def count_for_rule(
        self,
        rule_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> int:
        result = await self.db.execute(
            select(func.count(RuleExecution.id)).where(
                RuleExecution.rule_id == rule_id, *_window(since, until)
            )
        )
        return int(result.scalar_one())

    async def _suppression_breakdown(
        self,
        since: datetime | None,
        until: datetime | None,
        *criteria: Any,
    ) -> dict[str, dict[str, int]]:
        """rule_id -> {suppression_reason: count} for suppressed rows."""
        result = await self.db.execute(
            select(
                RuleExecution.rule_id,
                RuleExecution.suppression_reason,
                func.count(RuleExecution.id).label("n"),
            )
            .join(Rule, Rule.id == RuleExecution.rule_id)
            .where(
                RuleExecution.outcome == RuleOutcome.SUPPRESSED.value,
                *criteria,
                *_window(since, until),
            )
            .group_by(RuleExecution.rule_id, RuleExecution.suppression_reason)
        )
        breakdown: dict[str, dict[str, int]] = {}
        for row in result.all():
            breakdown.setdefault(row.rule_id, {})[row.suppression_reason] = int(row.n)
        return breakdown

    async def rule_metrics(
        self,
        rule_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> RuleMetrics | None:
        rule_name = (
            await self.db.execute(select(Rule.name).where(Rule.id == rule_id))
        ).scalar_one_or_none()
        if rule_name is None:
            return None
        counts = (
            await self.db.execute(
                select(*_outcome_counts()).where(
                    RuleExecution.rule_id == rule_id, *_window(since, until)
                )
            )
        ).one()
        breakdown = await self._suppression_breakdown(
            since, until, RuleExecution.rule_id == rule_id
        )
        return RuleMetrics(
            rule_id=rule_id,
            rule_name=rule_name,
            evaluated_count=int(counts.evaluated_count),
            applied_count=int(counts.applied_count),
            suppressed_count=int(counts.suppressed_count),
            suppression_breakdown=breakdown.get(rule_id, {}),
        )

    async def workflow_metrics(
        self,
        workflow_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> WorkflowRuleMetrics:
        """Per-rule totals (rules with no executions report zeros)."""
        result = await self.db.execute(
            select(Rule.id, Rule.name, *_outcome_counts())
            .outerjoin(
                RuleExecution,
                and_(RuleExecution.rule_id == Rule.id, *_window(since, until)),
            )
            .where(Rule.workflow_id == workflow_id)
            .group_by(Rule.id, Rule.name)
            .order_by(Rule.name.asc(), Rule.id.asc())
        )
        rows = result.all()
        breakdown = await self._suppression_breakdown(
            since, until, Rule.workflow_id == workflow_id
        )
        rules = tuple(
            RuleMetrics(
                rule_id=row.id,
                rule_name=row.name,
                evaluated_count=int(row.evaluated_count),
                applied_count=int(row.applied_count),
                suppressed_count=int(row.suppressed_count),
                suppression_breakdown=breakdown.get(row.id, {}),
            )
            for row in rows
        )
        return WorkflowRuleMetrics(
            workflow_id=workflow_id,
            evaluated_count=sum(r.evaluated_count for r in rules),
            applied_count=sum(r.applied_count for r in rules),
            suppressed_count=sum(r.suppressed_count for r in rules),
            rules=rules,
        )
