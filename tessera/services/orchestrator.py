import asyncio
import logging
import os
from typing import Iterable, List, Optional, Set

import httpx

from tessera.core.config import settings
from tessera.core.exceptions import (
	DuplicateFileError,
	TesseraError,
	TooManyFilesError,
	UnsupportedFileError,
)
from tessera.schemas.jobs import JobStatus
from tessera.services.channel import ProgressChannel
from tessera.services.storage import UploadSource
from tessera.services.store import JobStateStore, get_store
from tessera.services.uploader import ChunkUploader

logger = logging.getLogger(__name__)


class UploadOrchestrator:
	"""
	Drives queued files through upload, hand-off and progress tracking.

	Uploads run on ``concurrency`` workers that are started on the first
	trigger and shared by every later one. They take files in enqueue order; with the default of
	one worker files are uploaded strictly one after another. Once a file has a
	job id its progress feed is followed by an independent task, so the next
	upload does not wait for the server to finish.
	"""

	def __init__(
		self,
		store: JobStateStore,
		uploader: ChunkUploader,
		channel: ProgressChannel,
		concurrency: int = 1,
		max_files: Optional[int] = None,
		allowed_extensions: Optional[List[str]] = None,
	) -> None:
		self.store = store
		self.uploader = uploader
		self.channel = channel
		self.concurrency = max(1, concurrency)
		self.max_files = max_files
		self.allowed_extensions = allowed_extensions
		self._pending: List[UploadSource] = []
		# Names handed to the workers and not yet through the upload phase
		self._in_flight: Set[str] = set()
		self._feeds: Set[asyncio.Task] = set()
		self.queue: Optional[asyncio.Queue] = None  # Will be created lazily
		self.workers: List[asyncio.Task] = []
		self._started = False

	@property
	def pending(self) -> List[str]:
		return [source.name for source in self._pending]

	@property
	def in_flight(self) -> List[str]:
		return sorted(self._in_flight)

	def enqueue(self, sources: Iterable[UploadSource]) -> List[str]:
		"""Validate and queue files; nothing is sent until ``process_queued`` runs."""
		sources = list(sources)
		if self.max_files is not None and len(sources) > self.max_files:
			raise TooManyFilesError(len(sources), self.max_files)

		seen = set(self.pending)
		for source in sources:
			self._validate(source, seen)
			seen.add(source.name)

		self._pending.extend(sources)
		names = [source.name for source in sources]
		if names:
			logger.info(f"Queued {len(names)} file(s): {', '.join(names)}")
		return names

	def _validate(self, source: UploadSource, seen: Set[str]) -> None:
		if self.allowed_extensions is not None:
			ext = os.path.splitext(source.name)[1].lower()
			if ext not in self.allowed_extensions:
				raise UnsupportedFileError(source.name)

		if source.name in seen or source.name in self._in_flight:
			raise DuplicateFileError(source.name)
		current = self.store.get(source.name)
		if current is not None and not current.status.is_terminal:
			raise DuplicateFileError(source.name)

	def _ensure_initialized(self) -> None:
		"""Ensure the upload queue exists in the current event loop."""
		if self.queue is None:
			self.queue = asyncio.Queue()

	async def start(self) -> None:
		if self._started:
			return
		self._ensure_initialized()
		self._started = True
		for _ in range(self.concurrency):
			self.workers.append(asyncio.create_task(self._worker_loop()))

	async def stop(self) -> None:
		for w in self.workers:
			w.cancel()
		await asyncio.gather(*self.workers, return_exceptions=True)
		self.workers.clear()
		self._started = False

	async def process_queued(self) -> None:
		"""
		Hand every queued file to the upload workers and wait until the
		queue has drained.

		All triggers feed the same queue and the same workers, so a second
		trigger while a batch is still uploading never raises the number of
		parallel uploads above ``concurrency``.
		"""
		batch, self._pending = self._pending, []
		if not batch and not self._in_flight:
			return
		await self.start()
		for source in batch:
			self._in_flight.add(source.name)
			self.queue.put_nowait(source)
		await self.queue.join()

	async def _worker_loop(self) -> None:
		while True:
			try:
				source = await self.queue.get()
			except asyncio.CancelledError:
				break
			try:
				await self.process_file(source)
			except asyncio.CancelledError:
				raise
			except Exception as e:
				logger.exception("worker error", extra={"file_name": source.name, "error": str(e)})
			finally:
				self._in_flight.discard(source.name)
				self.queue.task_done()

	async def process_file(self, source: UploadSource) -> Optional[str]:
		"""Upload one file and start following its job. Returns the job id, or None on failure."""
		self.store.upsert(source.name, status=JobStatus.UPLOADING, progress=0)
		try:
			job_id = await self.uploader.upload(source)
		except (TesseraError, OSError) as e:
			logger.error(f"Upload of {source.name} failed: {e}")
			self.store.update_by_file_name(source.name, status=JobStatus.ERROR, error=str(e))
			return None
		except Exception as e:
			self.store.update_by_file_name(source.name, status=JobStatus.ERROR, error=str(e))
			raise

		# Hand-off: the upload phase is over, the server phase starts from zero
		self.store.update_by_file_name(source.name, job_id=job_id, status=JobStatus.IN_PROGRESS, progress=0)
		self._start_feed(job_id)
		return job_id

	def _start_feed(self, job_id: str) -> None:
		task = asyncio.create_task(self._follow(job_id), name=f"feed-{job_id}")
		self._feeds.add(task)
		task.add_done_callback(self._feeds.discard)

	async def _follow(self, job_id: str) -> None:
		try:
			await self.channel.listen(job_id)
		except asyncio.CancelledError:
			raise
		except Exception as e:
			logger.exception("feed listener error", extra={"job_id": job_id})
			self.store.update_by_job_id(job_id, status=JobStatus.ERROR, error=str(e))

	async def wait_for_feeds(self) -> None:
		"""Wait until every open progress feed has ended."""
		while self._feeds:
			await asyncio.gather(*list(self._feeds), return_exceptions=True)

	async def close(self) -> None:
		"""Stop the upload workers, drop anything still queued and cancel open feeds."""
		await self.stop()
		if self.queue is not None:
			while not self.queue.empty():
				self.queue.get_nowait()
				self.queue.task_done()
		self._in_flight.clear()
		for task in list(self._feeds):
			task.cancel()
		await asyncio.gather(*list(self._feeds), return_exceptions=True)
		self._feeds.clear()


_orchestrator: Optional[UploadOrchestrator] = None


def create_orchestrator(client: Optional[httpx.AsyncClient] = None, store: Optional[JobStateStore] = None) -> UploadOrchestrator:
	"""Wire an orchestrator from settings."""
	store = store or get_store()
	client = client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT)
	return UploadOrchestrator(
		store=store,
		uploader=ChunkUploader(client, store, upload_url=settings.UPLOAD_URL, chunk_size=settings.CHUNK_SIZE),
		channel=ProgressChannel(store, base_url=settings.PROGRESS_URL, idle_timeout=settings.feed_idle_timeout),
		concurrency=settings.UPLOAD_CONCURRENCY,
		max_files=settings.MAX_FILES_PER_BATCH,
		allowed_extensions=settings.ALLOWED_EXTENSIONS,
	)


def get_orchestrator() -> UploadOrchestrator:
	"""Get the global orchestrator instance, creating it if necessary."""
	global _orchestrator
	if _orchestrator is None:
		_orchestrator = create_orchestrator()
	return _orchestrator


async def shutdown_orchestrator() -> None:
	global _orchestrator
	if _orchestrator is not None:
		await _orchestrator.close()
		await _orchestrator.uploader.client.aclose()
		_orchestrator = None
