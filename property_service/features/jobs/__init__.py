"""Job tracking feature.

Submits tracked background jobs and lets users follow them:
- JobSubmissionService: enqueue on the job type's queue and track for the user
- router: list, count, remove and annotate tracked jobs
"""

from property_service.features.jobs.service import JobSubmissionService

__all__ = ["JobSubmissionService"]
