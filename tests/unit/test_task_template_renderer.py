"""Tests for TaskTemplateRenderer (placeholder expansion and task drafts)."""

from datetime import UTC, datetime

import pytest

from taskpool.application.dtos.rule_evaluation import (
    ActingUser,
    StateChangeEvent,
    TemplateContext,
)
from taskpool.application.dtos.workflow import TaskTemplateResult
from taskpool.domain.enums import ResourceType
from taskpool.infrastructure.services.task_template_renderer import TaskTemplateRenderer


@pytest.fixture
def renderer() -> TaskTemplateRenderer:
    return TaskTemplateRenderer()


@pytest.fixture
def event() -> StateChangeEvent:
    return StateChangeEvent(
        org_id="org1",
        project_id="p1",
        origin_type=ResourceType.TASK,
        origin_id="t1",
        to_state="completed",
        from_state="claimed",
        origin_title="Write docs",
        task_type_id="bug",
        card_id="c1",
        project_name="Website",
    )


@pytest.fixture
def context(event: StateChangeEvent) -> TemplateContext:
    return TemplateContext.from_event(event, ActingUser("u5", "Ana"))


def _template(name: str = "Review", description: str | None = None) -> TaskTemplateResult:
    return TaskTemplateResult(
        id="tpl1",
        org_id="org1",
        project_id=None,
        name=name,
        description=description,
        type_id="review",
        priority=2,
        created_by="admin",
        created_at=datetime.now(UTC),
    )


class TestTemplateContext:
    def test_values_from_event(self, context: TemplateContext) -> None:
        assert context.as_dict() == {
            "origin": "Write docs",
            "origin_id": "t1",
            "origin_type": "task",
            "from_state": "claimed",
            "to_state": "completed",
            "project": "Website",
            "user": "Ana",
        }

    def test_system_transition_user_is_system(self, event: StateChangeEvent) -> None:
        assert TemplateContext.from_event(event, None).user == "system"

    def test_user_without_display_name_uses_id(self, event: StateChangeEvent) -> None:
        assert TemplateContext.from_event(event, ActingUser("u5")).user == "u5"

    def test_fallbacks_when_names_missing(self) -> None:
        bare = StateChangeEvent(
            org_id="org1",
            project_id="p1",
            origin_type="card",  # type: ignore[arg-type]
            origin_id="c1",
            to_state="cerrada",
        )
        ctx = TemplateContext.from_event(bare, None)
        assert ctx.origin == "c1"
        assert ctx.project == "p1"
        assert ctx.from_state == ""


class TestRender:
    def test_expands_known_placeholders(
        self, renderer: TaskTemplateRenderer, context: TemplateContext
    ) -> None:
        text = "Review {{origin}} ({{origin_type}} {{origin_id}}) in {{project}} for {{user}}"
        assert (
            renderer.render(text, context)
            == "Review Write docs (task t1) in Website for Ana"
        )

    def test_state_placeholders(
        self, renderer: TaskTemplateRenderer, context: TemplateContext
    ) -> None:
        assert renderer.render("{{from_state}} -> {{to_state}}", context) == (
            "claimed -> completed"
        )

    def test_unknown_placeholder_left_in_place(
        self, renderer: TaskTemplateRenderer, context: TemplateContext
    ) -> None:
        assert renderer.render("Ping {{assignee}} about {{origin}}", context) == (
            "Ping {{assignee}} about Write docs"
        )

    @pytest.mark.parametrize(
        "unknown",
        [
            "{{ usr.name }}",
            "{{ typo|upper }}",
            "{{typo}}",
            "{{   typo }}",
            "{{ typo() }}",
            "{{ origin ~ typo }}",
            "{{ origin|no_such_filter }}",
        ],
    )
    def test_unknown_expression_kept_verbatim_beside_known(
        self, renderer: TaskTemplateRenderer, context: TemplateContext, unknown: str
    ) -> None:
        assert renderer.render("{{origin}} by " + unknown, context) == (
            "Write docs by " + unknown
        )

    def test_known_placeholder_with_filter(
        self, renderer: TaskTemplateRenderer, context: TemplateContext
    ) -> None:
        assert renderer.render("{{ origin|upper }} for {{user}}", context) == (
            "WRITE DOCS for Ana"
        )

    def test_unknown_expression_between_known_ones(
        self, renderer: TaskTemplateRenderer, context: TemplateContext
    ) -> None:
        text = "{{from_state}}\n{{ who.am.i() }}\n{{to_state}}\n"
        assert renderer.render(text, context) == "claimed\n{{ who.am.i() }}\ncompleted\n"

    def test_invalid_template_returned_verbatim(
        self, renderer: TaskTemplateRenderer, context: TemplateContext
    ) -> None:
        text = "Broken {{ origin "
        assert renderer.render(text, context) == text

    def test_plain_text_and_none_pass_through(
        self, renderer: TaskTemplateRenderer, context: TemplateContext
    ) -> None:
        assert renderer.render("No placeholders", context) == "No placeholders"
        assert renderer.render(None, context) is None

    def test_compiled_template_reused(
        self, renderer: TaskTemplateRenderer, context: TemplateContext
    ) -> None:
        renderer.render("{{origin}}", context)
        renderer.render("{{origin}}", context)
        assert list(renderer._compiled) == ["{{origin}}"]


class TestInstantiate:
    def test_draft_fields(
        self, renderer: TaskTemplateRenderer, context: TemplateContext
    ) -> None:
        draft = renderer.instantiate(
            _template(description="Check {{origin}} by {{user}}"), context
        )
        assert draft.title == "Review"
        assert draft.description == "Check Write docs by Ana"
        assert draft.type_id == "review"
        assert draft.priority == 2
        assert draft.status == "available"

    def test_title_truncated_to_limit(
        self, renderer: TaskTemplateRenderer, context: TemplateContext
    ) -> None:
        draft = renderer.instantiate(_template(name="x" * 80), context)
        assert len(draft.title) == 56

    def test_title_is_not_expanded(
        self, renderer: TaskTemplateRenderer, context: TemplateContext
    ) -> None:
        draft = renderer.instantiate(_template(name="Follow up {{origin}}"), context)
        assert draft.title == "Follow up {{origin}}"

    def test_custom_title_limit(self, context: TemplateContext) -> None:
        draft = TaskTemplateRenderer(title_max_length=5).instantiate(
            _template(name="Review all"), context
        )
        assert draft.title == "Revie"
