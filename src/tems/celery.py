"""Celery setup for TEMS."""

import os
import typing as t

import structlog
from celery import Celery
from celery.signals import task_postrun, task_prerun
from opentelemetry import trace

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "tems.settings")

app = Celery("tems")

# - namespace='CELERY' means all celery-related configuration keys
#   should have a `CELERY_` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Load task modules from all registered Django apps.
app.autodiscover_tasks()


@task_prerun.connect
def celery_task_prerun(task_id: str, task: t.Any, *args: t.Any, **kwargs: t.Any) -> None:
    """Bind Celery task context to structlog before task execution.

    Args:
        task_id: Unique ID of the Celery task
        task: The Celery task instance
        args: Task positional arguments
        kwargs: Task keyword arguments
    """
    structlog.contextvars.clear_contextvars()

    context = {
        "task_id": task_id,
        "task_name": task.name,
        "retries": getattr(task.request, "retries", 0),
    }

    span = trace.get_current_span()
    if span and span.get_span_context().is_valid:
        context["trace_id"] = format(span.get_span_context().trace_id, "032x")

    structlog.contextvars.bind_contextvars(**context)


@task_postrun.connect
def celery_task_postrun(*args: t.Any, **kwargs: t.Any) -> None:
    """Clear structlog context after task execution."""
    structlog.contextvars.clear_contextvars()


# run:
# celery -A tems worker -l INFO
# celery -A tems beat -l INFO
