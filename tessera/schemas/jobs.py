from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from tessera.core.constants import MAX_PROGRESS, MIN_PROGRESS


Number = Union[int, float]


class JobStatus(str, Enum):
	QUEUED = "queued"
	UPLOADING = "uploading"
	IN_PROGRESS = "in-progress"
	COMPLETED = "completed"
	ERROR = "error"

	@property
	def is_terminal(self) -> bool:
		return self in (JobStatus.COMPLETED, JobStatus.ERROR)


class FileUploadJob(BaseModel):
	"""State of one submitted file, from first chunk to final result."""

	model_config = ConfigDict(frozen=True)

	file_name: str
	job_id: Optional[str] = None
	progress: int = Field(MIN_PROGRESS, ge=MIN_PROGRESS, le=MAX_PROGRESS)
	status: JobStatus = JobStatus.QUEUED
	result: Optional[List[Number]] = None
	error: Optional[str] = None

	@computed_field
	@property
	def display_progress(self) -> int:
		if self.status in (JobStatus.UPLOADING, JobStatus.IN_PROGRESS):
			return self.progress
		if self.status == JobStatus.COMPLETED:
			return MAX_PROGRESS
		return MIN_PROGRESS


FEED_STATUSES = (JobStatus.IN_PROGRESS, JobStatus.COMPLETED, JobStatus.ERROR)


class ProgressMessage(BaseModel):
	"""One frame of the progress feed."""

	progress: Optional[int] = Field(None, ge=MIN_PROGRESS, le=MAX_PROGRESS)
	status: JobStatus
	result: Optional[List[Number]] = None
	error: Optional[str] = None

	@model_validator(mode="before")
	@classmethod
	def _error_frames(cls, data):
		# The backend reports unknown jobs as a bare {"error": "..."} frame
		if isinstance(data, dict) and "status" not in data and data.get("error"):
			return {**data, "status": JobStatus.ERROR.value}
		return data

	@model_validator(mode="after")
	def _check_status(self):
		if self.status not in FEED_STATUSES:
			raise ValueError(f"status '{self.status.value}' is not a feed status")
		if self.status == JobStatus.COMPLETED and not self.result:
			raise ValueError("completed frame carries no result")
		return self

	@property
	def is_terminal(self) -> bool:
		return self.status.is_terminal

	def as_patch(self) -> Dict[str, object]:
		"""Fields this frame contributes to the job record."""
		patch: Dict[str, object] = {"status": self.status}
		if self.progress is not None:
			patch["progress"] = self.progress
		elif self.status == JobStatus.COMPLETED:
			patch["progress"] = MAX_PROGRESS
		if self.status == JobStatus.COMPLETED:
			patch["result"] = list(self.result)
		if self.status == JobStatus.ERROR:
			patch["error"] = self.error or "job failed on the server"
		return patch
