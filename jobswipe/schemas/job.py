"""
Pydantic schemas for job posting endpoints.
"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field, model_validator


class JobPostingBase(BaseModel):
    """Base job posting schema with common fields."""
    title: str = Field(..., description="Job title", min_length=1, max_length=255)
    description: Optional[str] = Field(None, description="Job description")
    employment_type: Optional[str] = Field(None, description="full_time, part_time, mini_job, ...")
    industry: Optional[str] = None
    skills: Optional[List[str]] = None
    languages: Optional[List[str]] = None
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    available_now: bool = False
    city: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    is_flex: bool = Field(False, description="Short-notice flex job")
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None


class JobPostingCreate(JobPostingBase):
    """Schema for creating a job posting."""

    @model_validator(mode="after")
    def check_ranges(self):
        if self.salary_min is not None and self.salary_max is not None and self.salary_min > self.salary_max:
            raise ValueError("salary_min must not exceed salary_max")
        if self.starts_at and self.ends_at and self.starts_at > self.ends_at:
            raise ValueError("starts_at must be before ends_at")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Barista (weekend)",
                "employment_type": "part_time",
                "industry": "gastronomy",
                "skills": ["coffee", "cash register"],
                "languages": ["de", "en"],
                "salary_min": 1400,
                "salary_max": 1800,
                "city": "Berlin",
                "latitude": 52.52,
                "longitude": 13.405,
                "is_flex": False
            }
        }


class JobPostingResponse(JobPostingBase):
    """Schema for job posting response."""
    id: int
    employer_id: int
    created_at: datetime

    class Config:
        from_attributes = True
