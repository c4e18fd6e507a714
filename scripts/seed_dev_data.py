"""Seed dev data from scripts/seed-data.json into the configured database.

Loads workflows (with their rules and attached task templates) and pool
tasks. Workflows whose name is already taken in their scope are skipped,
so the script can be re-run. Everything is written in one transaction.

Usage:
    uv run python -m scripts.seed_dev_data [path/to/seed-data.json]

Requires: DATABASE_URL (async driver) and a migrated database
(alembic upgrade head).
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from taskpool.core.composition import Services, build_services
from taskpool.domain.exceptions import (
    DatabaseNotConfiguredException,
    WorkflowAlreadyExistsException,
)
from taskpool.infrastructure.persistence.database import (
    dispose_engine,
    get_db_transactional,
)
from taskpool.schemas.workflow import RuleCreate, TaskTemplateCreate


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


async def _seed_workflow(services: Services, w: dict[str, Any]) -> None:
    org_id = w["org_id"]
    project_id = w.get("project_id")
    try:
        workflow = await services.registry.create_workflow(
            org_id,
            project_id,
            w["name"],
            w.get("description"),
            w.get("active", True),
            w.get("created_by", "seed"),
        )
    except WorkflowAlreadyExistsException:
        print(f"  Workflow {w['name']} already exists, skip")
        return
    print(f"  Workflow {workflow.name} -> {workflow.id}")

    for r in w.get("rules", []):
        templates = r.pop("templates", [])
        rule = await services.registry.create_rule(
            workflow.id, org_id, project_id, RuleCreate(**r)
        )
        print(f"    Rule {rule.name} ({rule.resource_type} -> {rule.to_state})")
        for order, t in enumerate(templates):
            template = await services.registry.create_task_template(
                org_id,
                project_id,
                TaskTemplateCreate(**t),
                w.get("created_by", "seed"),
            )
            await services.registry.attach_template(
                rule.id, template.id, org_id, project_id, order
            )
            print(f"      Template {template.name} @ {order}")


async def run(path: Path) -> None:
    if not path.exists():
        print(f"Seed file not found: {path}", file=sys.stderr)
        sys.exit(1)
    with path.open() as f:
        data = json.load(f)

    try:
        async with get_db_transactional() as session:
            services = build_services(session)
            for w in data.get("workflows", []):
                await _seed_workflow(services, w)
            for t in data.get("tasks", []):
                task = await services.lifecycle.create_task(
                    t["org_id"],
                    t["project_id"],
                    t["title"],
                    t["type_id"],
                    t.get("created_by", "seed"),
                    description=t.get("description"),
                    priority=t.get("priority", 3),
                )
                print(f"  Task {task.title} -> {task.id}")
    except DatabaseNotConfiguredException:
        print(
            "Database not configured. Set DATABASE_URL and run: uv run alembic upgrade head",
            file=sys.stderr,
        )
        sys.exit(1)
    finally:
        await dispose_engine()

    print("Seed completed.")


def main() -> None:
    root = _project_root()
    path_arg = sys.argv[1] if len(sys.argv) > 1 else None
    path = Path(path_arg) if path_arg else root / "scripts" / "seed-data.json"
    if not path.is_absolute():
        path = (root / path).resolve()
    asyncio.run(run(path))


if __name__ == "__main__":
    main()
