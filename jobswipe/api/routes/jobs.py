"""
Job posting endpoints.

Employers publish postings; job seekers see them in their swipe deck.
"""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from jobswipe.core.auth_dependency import get_db, get_current_account, get_current_employer
from jobswipe.db.models.account import Account
from jobswipe.db.models.job_posting import JobPosting
from jobswipe.schemas.job import JobPostingCreate, JobPostingResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=JobPostingResponse)
def create_job(
    job_data: JobPostingCreate,
    employer: Account = Depends(get_current_employer),
    db: Session = Depends(get_db)
):
    """Publish a job posting for the authenticated employer."""
    job = JobPosting(employer_id=employer.id, **job_data.model_dump())
    db.add(job)
    db.commit()
    db.refresh(job)

    logger.info(f"Job posting created: job_id={job.id}, employer_id={employer.id}, flex={job.is_flex}")
    return job


@router.get("/mine", response_model=List[JobPostingResponse])
def list_my_jobs(
    employer: Account = Depends(get_current_employer),
    db: Session = Depends(get_db)
):
    return db.query(JobPosting).filter(
        JobPosting.employer_id == employer.id
    ).order_by(JobPosting.created_at.desc(), JobPosting.id.desc()).all()


@router.get("/{job_id}", response_model=JobPostingResponse)
def get_job(
    job_id: int,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    job = db.query(JobPosting).filter(JobPosting.id == job_id).first()
    if not job:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job posting {job_id} not found"
        )
    return job
