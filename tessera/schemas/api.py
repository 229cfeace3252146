import string
from typing import Dict, List, Optional

from pydantic import BaseModel

from tessera.schemas.jobs import FileUploadJob, Number


class JobResponse(BaseModel):
	file_name: str
	job_id: Optional[str] = None
	status: str
	progress: int
	display_progress: int
	result: Optional[List[Number]] = None
	letter_counts: Optional[Dict[str, Number]] = None
	error: Optional[str] = None

	@classmethod
	def from_job(cls, job: FileUploadJob) -> "JobResponse":
		letter_counts = None
		# The backend's analysis returns one count per letter a..z
		if job.result is not None and len(job.result) == len(string.ascii_lowercase):
			letter_counts = dict(zip(string.ascii_lowercase, job.result))
		return cls(
			file_name=job.file_name,
			job_id=job.job_id,
			status=job.status.value,
			progress=job.progress,
			display_progress=job.display_progress,
			result=job.result,
			letter_counts=letter_counts,
			error=job.error,
		)


class EnqueueResponse(BaseModel):
	queued: List[str]


class PendingResponse(BaseModel):
	pending: List[str]


class ProcessResponse(BaseModel):
	triggered: int
