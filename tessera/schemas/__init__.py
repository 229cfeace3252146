from .jobs import FileUploadJob, JobStatus, ProgressMessage
from .api import JobResponse, EnqueueResponse, PendingResponse, ProcessResponse
