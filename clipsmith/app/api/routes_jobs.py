from typing import List

from fastapi import APIRouter, HTTPException, Request

from clipsmith.app.schemas.clips import ClipOut
from clipsmith.app.schemas.jobs import JobAccepted, JobDetail, JobRequest
from clipsmith.domain.errors import InvalidJobRequest
from clipsmith.domain.services.job_service import JobService

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


def _service(request: Request) -> JobService:
    return request.app.state.job_service


@router.post("", response_model=JobAccepted, status_code=202)
async def create_job(body: JobRequest, request: Request):
    """
    Validate the request, create the job and queue it. Processing happens in
    the background; poll GET /api/jobs/{job_id} for progress.
    """
    try:
        job = _service(request).submit_job(
            body.url,
            job_id=body.job_id,
            owner_id=body.owner_id,
            options=body.options.to_options(),
        )
    except InvalidJobRequest as e:
        raise HTTPException(status_code=409 if e.conflict else 400, detail=str(e)) from e
    return JobAccepted(job_id=job.id)


@router.get("/{job_id}", response_model=JobDetail)
async def get_job_status(job_id: str, request: Request):
    service = _service(request)
    job = service.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    clips = [ClipOut.from_clip(c) for c in service.list_clips(job_id)]
    return JobDetail.from_job(job, clips)


@router.get("/{job_id}/clips", response_model=List[ClipOut])
async def get_job_clips(job_id: str, request: Request):
    service = _service(request)
    if not service.get_job(job_id):
        raise HTTPException(status_code=404, detail="Job not found")
    return [ClipOut.from_clip(c) for c in service.list_clips(job_id)]
