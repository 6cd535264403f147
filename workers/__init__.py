# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# This package contains the Celery configuration and task definitions for
# scheduled key rotation and retried key provisioning.
#
# Components:
# - celery_app.py: Celery application configuration
# - tasks.py: Task definitions (rotation batch, provisioning retry)
# - config.py: Worker-specific settings and the beat schedule
#
# Usage:
#   # Start worker with the embedded beat scheduler
#   celery -A workers.celery_app worker --beat --loglevel=info
#
#   # Submit task (from API or a shell)
#   from workers.tasks import provision_hunter_key
#   result = provision_hunter_key.delay(hunter_id, "Mage", "Jinwoo")
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
