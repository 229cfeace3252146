import asyncio
import logging
from typing import Optional

import httpx

from tessera.core.config import settings
from tessera.core.constants import (
	FIELD_CHUNK,
	FIELD_CHUNK_INDEX,
	FIELD_FILE_NAME,
	FIELD_TOTAL_CHUNKS,
	RESPONSE_JOB_ID,
)
from tessera.core.exceptions import ChunkTransportError, UploadFailed
from tessera.schemas.jobs import JobStatus
from tessera.services.splitter import ChunkRange, split_chunks, upload_progress
from tessera.services.storage import UploadSource
from tessera.services.store import JobStateStore

logger = logging.getLogger(__name__)


class ChunkUploader:
	"""
	Sends a file to the ingestion endpoint one chunk at a time.

	A chunk is only sent after the previous one was acknowledged, so the
	backend receives every file's chunks in order.
	"""

	def __init__(
		self,
		client: httpx.AsyncClient,
		store: JobStateStore,
		upload_url: Optional[str] = None,
		chunk_size: Optional[int] = None,
	) -> None:
		self.client = client
		self.store = store
		self.upload_url = upload_url if upload_url is not None else settings.UPLOAD_URL
		self.chunk_size = chunk_size if chunk_size is not None else settings.CHUNK_SIZE

	async def upload(self, source: UploadSource, chunk_size: Optional[int] = None) -> str:
		"""Upload every chunk of ``source`` and return the job id issued for it."""
		chunks = split_chunks(source.size, chunk_size if chunk_size is not None else self.chunk_size)
		total = len(chunks)
		job_id: Optional[str] = None

		logger.info("starting upload", extra={"file_name": source.name, "total_chunks": total})
		for chunk in chunks:
			response = await self._send_chunk(source, chunk, total)
			if chunk.index == total - 1:
				job_id = self._job_id_from(response, chunk)

			self.store.update_by_file_name(
				source.name,
				progress=upload_progress(chunk.index, total),
				status=JobStatus.UPLOADING,
			)

		logger.info("upload finished", extra={"file_name": source.name, "job_id": job_id})
		return job_id

	async def _send_chunk(self, source: UploadSource, chunk: ChunkRange, total: int) -> httpx.Response:
		data = await asyncio.to_thread(source.read_range, chunk.start, chunk.end)
		form = {
			FIELD_FILE_NAME: source.name,
			FIELD_CHUNK_INDEX: str(chunk.index),
			FIELD_TOTAL_CHUNKS: str(total),
		}
		files = {FIELD_CHUNK: (source.name, data, "application/octet-stream")}

		try:
			response = await self.client.post(self.upload_url, data=form, files=files)
		except httpx.RequestError as e:
			logger.error(f"Chunk {chunk.index}/{total} of {source.name} not delivered: {e}")
			raise ChunkTransportError(f"chunk {chunk.index} not delivered: {e}", chunk_index=chunk.index) from e

		if not response.is_success:
			logger.error(
				f"Chunk {chunk.index}/{total} of {source.name} rejected with {response.status_code}: {response.text}"
			)
			raise UploadFailed(response.text, chunk_index=chunk.index, status_code=response.status_code)

		logger.debug("chunk acknowledged", extra={"file_name": source.name, "chunk_index": chunk.index})
		return response

	def _job_id_from(self, response: httpx.Response, chunk: ChunkRange) -> str:
		try:
			body = response.json()
		except ValueError as e:
			raise UploadFailed(f"final chunk response is not JSON: {e}", chunk_index=chunk.index) from e

		job_id = body.get(RESPONSE_JOB_ID) if isinstance(body, dict) else None
		if not isinstance(job_id, str) or not job_id:
			raise UploadFailed("final chunk response carries no job_id", chunk_index=chunk.index)
		return job_id
