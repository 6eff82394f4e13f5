"""
Scheduled background jobs.
"""

from .digest import DigestDependencies, create_digest_job, group_alerts_by_user, run_digest_job
from .session_cleanup import create_session_cleanup_scheduler, run_session_cleanup

__all__ = [
    "DigestDependencies",
    "create_digest_job",
    "group_alerts_by_user",
    "run_digest_job",
    "create_session_cleanup_scheduler",
    "run_session_cleanup",
]
