"""Run one matched workflow for one event and log what happened."""

from __future__ import annotations

import logging

from hookrunner.config import WorkflowConfig, expand_tilde
from hookrunner.events import Event
from hookrunner.workflow.launcher import Completed, LaunchFailed, LaunchResult, TimedOut, launch
from hookrunner.workflow.templates import (
    TemplateError,
    TemplateVars,
    render_template,
    sanitize_vars,
)

logger = logging.getLogger(__name__)


def workflow_env(template_vars: TemplateVars) -> dict[str, str]:
    """Environment exposed to the command.

    These are the raw, unsanitized values: they reach the process as environment
    variables, never as interpolated shell text.
    """

    return {
        "HR_PR_NUMBER": template_vars.pr_number,
        "HR_REPO": template_vars.repo_full_name,
        "HR_COMMENT_BODY": template_vars.comment_body,
        "HR_COMMENT_AUTHOR": template_vars.comment_author,
        "HR_EVENT_TYPE": template_vars.event_type,
    }


def execute_workflow(name: str, workflow: WorkflowConfig, event: Event) -> LaunchResult | None:
    """Render and launch ``workflow`` for ``event``.

    Returns None when a template could not be rendered. Never raises.
    """

    raw = TemplateVars.from_event(event)
    safe = sanitize_vars(raw)
    context = {"workflow": name, "repo": event.repo_full_name, "number": event.subject_number}

    try:
        command = render_template(workflow.command, safe)
        workdir = expand_tilde(render_template(workflow.workdir, safe)) if workflow.workdir else ""
    except TemplateError as e:
        logger.error("Workflow %r: template error: %s", name, e, extra=context)
        return None

    logger.info(
        "Workflow %r started", name, extra={**context, "command": command, "workdir": workdir}
    )

    result = launch(name, command, workdir, workflow.timeout, workflow_env(raw))

    if isinstance(result, Completed) and result.ok:
        logger.info(
            "Workflow %r completed (%.1fs)",
            name,
            result.duration,
            extra={**context, "output": result.output},
        )
    elif isinstance(result, Completed):
        logger.error(
            "Workflow %r failed with exit code %d (%.1fs)",
            name,
            result.exit_code,
            result.duration,
            extra={**context, "exit_code": result.exit_code, "output": result.output},
        )
    elif isinstance(result, TimedOut):
        logger.error(
            "Workflow %r timed out after %ds",
            name,
            workflow.timeout,
            extra={**context, "duration": round(result.duration, 1), "output": result.output},
        )
    elif isinstance(result, LaunchFailed):
        logger.error(
            "Workflow %r could not be launched: %s", name, result.error, extra=context
        )

    return result
