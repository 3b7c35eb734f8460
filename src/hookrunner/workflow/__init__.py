"""Workflow execution.

This package turns a matched rule plus an event into a running process:
- template variables are sanitized and rendered into the command and workdir
- the command runs under ``sh`` with a deadline and captured output
- the outcome is logged; nothing here ever raises back to the request path
"""

from hookrunner.workflow.launcher import Completed, LaunchFailed, LaunchResult, TimedOut, launch
from hookrunner.workflow.runner import execute_workflow
from hookrunner.workflow.templates import (
    TemplateError,
    TemplateVars,
    render_template,
    sanitize,
    sanitize_vars,
)

__all__ = [
    "Completed",
    "LaunchFailed",
    "LaunchResult",
    "TemplateError",
    "TemplateVars",
    "TimedOut",
    "execute_workflow",
    "launch",
    "render_template",
    "sanitize",
    "sanitize_vars",
]
