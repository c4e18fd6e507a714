"""Task template instantiation: placeholder expansion into task drafts (Jinja).

Placeholders use Jinja expression syntax: {{origin}}, {{origin_id}},
{{origin_type}}, {{from_state}}, {{to_state}}, {{project}}, {{user}}.
Substitution is lenient. An expression that refers to anything else
({{assignee}}, {{ usr.name }}, {{ typo|upper }}, {{ typo() }}) is kept
exactly as written while the known placeholders around it are expanded,
and text that is not a valid template is returned verbatim. Neither case
is an error.
"""

from __future__ import annotations

import re
from dataclasses import fields

from jinja2 import Template, TemplateError, meta
from jinja2.lexer import TOKEN_VARIABLE_BEGIN, TOKEN_VARIABLE_END
from jinja2.sandbox import SandboxedEnvironment

from taskpool.application.dtos.rule_evaluation import TemplateContext
from taskpool.application.dtos.task import TaskDraft
from taskpool.application.dtos.workflow import TaskTemplateResult
from taskpool.core.constants import TASK_TITLE_MAX_LENGTH
from taskpool.domain.enums import TaskStatus
from taskpool.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

_MARKERS = ("{{", "{%", "{#")
_NEWLINES = re.compile(r"\r\n|\r")

PLACEHOLDERS = frozenset(f.name for f in fields(TemplateContext))


def _raw(expression: str) -> str:
    return "{% raw %}" + expression + "{% endraw %}"


class TaskTemplateRenderer:
    """Expands task templates into task drafts (implements ITaskTemplateRenderer).

    Pure: no I/O. Compiled templates are cached per source string.
    """

    def __init__(self, title_max_length: int = TASK_TITLE_MAX_LENGTH) -> None:
        self._title_max_length = title_max_length
        self._env = SandboxedEnvironment(autoescape=False, keep_trailing_newline=True)
        self._compiled: dict[str, Template] = {}

    def render(self, text: str | None, context: TemplateContext) -> str | None:
        """Substitute placeholders in text; None and plain text pass through."""
        if text is None or not any(marker in text for marker in _MARKERS):
            return text
        try:
            template = self._compiled.get(text)
            if template is None:
                template = self._env.from_string(self._keep_unknown(text))
                self._compiled[text] = template
            return template.render(**context.as_dict())
        except TemplateError as e:
            logger.debug("Template left verbatim (%s): %r", e.__class__.__name__, text)
            return text

    def _keep_unknown(self, text: str) -> str:
        """Wrap every {{ ... }} that is not built from known placeholders in a raw block.

        Token values are raw source slices, so each one is located in the
        text after the previous one; only whitespace removed by "-" markers
        can sit between them. Raises TemplateSyntaxError when text does not lex.
        """
        source = _NEWLINES.sub("\n", text)
        pieces: list[str] = []
        cursor = 0
        expression_start: int | None = None
        for _lineno, token, value in self._env.lex(source):
            start = source.find(value, cursor)
            end = start + len(value)
            if token == TOKEN_VARIABLE_BEGIN:
                pieces.append(source[cursor:start])
                expression_start = start
            elif token == TOKEN_VARIABLE_END and expression_start is not None:
                expression = source[expression_start:end]
                pieces.append(expression if self._is_known(expression) else _raw(expression))
                expression_start = None
            elif expression_start is None:
                pieces.append(source[cursor:end])
            cursor = end
        # An unterminated expression is left for from_string to reject.
        pieces.append(source[expression_start if expression_start is not None else cursor :])
        return "".join(pieces)

    def _is_known(self, expression: str) -> bool:
        try:
            names = meta.find_undeclared_variables(self._env.parse(expression))
        except TemplateError:
            return False
        return names <= PLACEHOLDERS

    def instantiate(
        self, template: TaskTemplateResult, context: TemplateContext
    ) -> TaskDraft:
        """Build the draft of the task a template describes in this context.

        Title is the template name cut to the task title limit; the
        description is expanded; type and priority come from the template.
        """
        return TaskDraft(
            title=template.name[: self._title_max_length],
            type_id=template.type_id,
            description=self.render(template.description, context),
            priority=template.priority,
            status=TaskStatus.AVAILABLE.value,
        )
