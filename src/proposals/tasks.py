"""Celery tasks for the proposals app."""
import logging

from celery import shared_task

logger = logging.getLogger("pipeline")


@shared_task(name="proposals.tasks.run_post_acceptance_task")
def run_post_acceptance_task(task_name, payload):
    """Run one post-acceptance task for a serialized acceptance snapshot.

    Failures are logged by the runner and never retried; the log line
    carries the estimate number and task name for manual replay.
    """
    from proposals.context import PostSignContext
    from proposals.fanout import TASKS, run_task

    if task_name not in TASKS:
        logger.error("Unknown post-acceptance task '%s'.", task_name)
        return "unknown task"
    return run_task(task_name, PostSignContext.from_payload(payload))
