"""
API Dependencies - Shared pipeline objects held on the application state.
"""

from typing import Annotated

from fastapi import Depends, Request

from app.core.errors import JobNotFoundError
from app.middleware import CurrentUserId
from app.models import Job
from app.services.storage import Storage
from app.worker.queue import JobQueue
from app.worker.results import ResultCompiler


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_job_queue(request: Request) -> JobQueue:
    return request.app.state.job_queue


def get_result_compiler(request: Request) -> ResultCompiler:
    return request.app.state.job_queue.compiler


StorageDep = Annotated[Storage, Depends(get_storage)]
JobQueueDep = Annotated[JobQueue, Depends(get_job_queue)]
ResultCompilerDep = Annotated[ResultCompiler, Depends(get_result_compiler)]


async def get_owned_job(job_id: int, user_id: CurrentUserId, storage: StorageDep) -> Job:
    """
    Load a job belonging to the current user.

    Raises:
        JobNotFoundError: If the job doesn't exist or belongs to someone else
    """
    job = await storage.get_job(job_id)
    if job.user_id != user_id:
        raise JobNotFoundError(job_id)
    return job


OwnedJob = Annotated[Job, Depends(get_owned_job)]
