"""Job and application API schemas."""

import uuid
from typing import Optional
from pydantic import BaseModel, Field, model_validator

from database.models.jobs import JobStatus, ApplicationStatus


class JobCreate(BaseModel):
    """Schema for posting a job."""

    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    location: Optional[str] = Field(None, max_length=255)
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    status: JobStatus = JobStatus.ACTIVE

    @model_validator(mode="after")
    def check_salary_range(self):
        if (
            self.salary_min is not None
            and self.salary_max is not None
            and self.salary_min > self.salary_max
        ):
            raise ValueError("salary_min cannot exceed salary_max")
        return self


class JobUpdate(BaseModel):
    """Schema for updating a job. Omitted fields are unchanged."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    location: Optional[str] = Field(None, max_length=255)
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    status: Optional[JobStatus] = None


class BulkStatusUpdate(BaseModel):
    """Schema for changing the status of several applications."""

    application_ids: list[uuid.UUID] = Field(..., min_length=1, max_length=500)
    status: ApplicationStatus
    notes: Optional[str] = Field(None, max_length=5000)


class BulkDelete(BaseModel):
    """Schema for deleting several applications."""

    application_ids: list[uuid.UUID] = Field(..., min_length=1, max_length=500)
