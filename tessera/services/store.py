"""
Process-wide job state, keyed by file name.

Every update is a structural merge that returns a snapshot of the record as
it stands after the update. Readers see the change as soon as the call returns.
"""
import logging
import threading
from typing import Callable, Dict, List, Optional

from tessera.core.exceptions import UnknownJobError
from tessera.schemas.jobs import FileUploadJob, JobStatus

logger = logging.getLogger(__name__)

Listener = Callable[[FileUploadJob], None]

_FIELDS = frozenset(FileUploadJob.model_fields) - {"file_name"}


class JobStateStore:
	def __init__(self) -> None:
		self._jobs: Dict[str, FileUploadJob] = {}
		self._by_job_id: Dict[str, str] = {}
		self._listeners: List[Listener] = []
		# One writer at a time; reentrant so listeners may read back
		self._lock = threading.RLock()

	def upsert(self, file_name: str, **initial) -> FileUploadJob:
		"""Create the record for ``file_name``, or reset an existing one to ``initial``."""
		self._check_fields(initial)
		with self._lock:
			job = FileUploadJob(file_name=file_name, **initial)
			self._store(job)
		self._notify(job)
		return job

	def update_by_file_name(self, file_name: str, **patch) -> FileUploadJob:
		self._check_fields(patch)
		with self._lock:
			current = self._jobs.get(file_name)
			if current is None:
				raise UnknownJobError(f"No job tracked for file '{file_name}'")
			job = self._merge(current, patch)
			self._store(job)
		self._notify(job)
		return job

	def update_by_job_id(self, job_id: str, **patch) -> FileUploadJob:
		self._check_fields(patch)
		with self._lock:
			file_name = self._by_job_id.get(job_id)
			if file_name is None:
				raise UnknownJobError(f"No job tracked with id '{job_id}'")
			job = self._merge(self._jobs[file_name], patch)
			self._store(job)
		self._notify(job)
		return job

	def get(self, file_name: str) -> Optional[FileUploadJob]:
		with self._lock:
			return self._jobs.get(file_name)

	def get_by_job_id(self, job_id: str) -> Optional[FileUploadJob]:
		with self._lock:
			file_name = self._by_job_id.get(job_id)
			return self._jobs.get(file_name) if file_name is not None else None

	def read_all(self) -> List[FileUploadJob]:
		"""Snapshot of every record, in creation order."""
		with self._lock:
			return list(self._jobs.values())

	def add_listener(self, listener: Listener) -> None:
		with self._lock:
			self._listeners.append(listener)

	def remove_listener(self, listener: Listener) -> None:
		with self._lock:
			if listener in self._listeners:
				self._listeners.remove(listener)

	def clear(self) -> None:
		with self._lock:
			self._jobs.clear()
			self._by_job_id.clear()

	def _check_fields(self, fields: Dict[str, object]) -> None:
		unknown = set(fields) - _FIELDS
		if unknown:
			raise ValueError(f"Unknown job fields: {', '.join(sorted(unknown))}")

	def _merge(self, current: FileUploadJob, patch: Dict[str, object]) -> FileUploadJob:
		data = current.model_dump(exclude={"display_progress"})
		data.update(patch)
		# A result only exists for completed jobs, an error only for failed ones
		status = JobStatus(data["status"])
		if status != JobStatus.COMPLETED:
			data["result"] = None
		if status != JobStatus.ERROR:
			data["error"] = None
		return FileUploadJob.model_validate(data)

	def _store(self, job: FileUploadJob) -> None:
		previous = self._jobs.get(job.file_name)
		if previous is not None and previous.job_id and previous.job_id != job.job_id:
			self._by_job_id.pop(previous.job_id, None)
		self._jobs[job.file_name] = job
		if job.job_id is not None:
			self._by_job_id[job.job_id] = job.file_name

	def _notify(self, job: FileUploadJob) -> None:
		with self._lock:
			listeners = list(self._listeners)
		for listener in listeners:
			try:
				listener(job)
			except Exception:
				logger.exception("job listener failed", extra={"file_name": job.file_name})


_store: Optional[JobStateStore] = None


def get_store() -> JobStateStore:
	"""Get the global job state store, creating it if necessary."""
	global _store
	if _store is None:
		_store = JobStateStore()
	return _store
