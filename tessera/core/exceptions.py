"""
Error taxonomy for Tessera.

Upload-phase errors abort the affected file immediately. Feed errors end the
subscription and mark the job as failed. Neither kind is retried.
"""
from typing import Optional


class TesseraError(Exception):
	"""Base class for all Tessera errors."""


class ChunkTransportError(TesseraError):
	"""A chunk could not be delivered to the ingestion endpoint."""

	def __init__(self, message: str, chunk_index: Optional[int] = None) -> None:
		super().__init__(message)
		self.message = message
		self.chunk_index = chunk_index


class UploadFailed(ChunkTransportError):
	"""The ingestion endpoint rejected a chunk or returned no job id."""

	def __init__(self, message: str, chunk_index: Optional[int] = None, status_code: Optional[int] = None) -> None:
		super().__init__(message, chunk_index=chunk_index)
		self.status_code = status_code

	def __str__(self) -> str:
		if self.status_code is not None:
			return f"chunk {self.chunk_index} rejected ({self.status_code}): {self.message}"
		return self.message


class ChannelTransportError(TesseraError):
	"""The progress feed failed, closed early, or went silent."""


class MalformedMessage(TesseraError):
	"""A progress feed frame could not be parsed."""

	def __init__(self, message: str, raw: object = None) -> None:
		super().__init__(message)
		self.raw = raw


class UnknownJobError(TesseraError, KeyError):
	"""No tracked job matches the given file name or job id."""

	def __str__(self) -> str:
		return str(self.args[0]) if self.args else "unknown job"


class DuplicateFileError(TesseraError):
	"""A file with the same name is already pending or in flight."""

	def __init__(self, file_name: str) -> None:
		super().__init__(f"File '{file_name}' is already queued or in progress")
		self.file_name = file_name


class UnsupportedFileError(TesseraError):
	"""The file type is not accepted."""

	def __init__(self, file_name: str) -> None:
		super().__init__(f"File type not accepted: {file_name}")
		self.file_name = file_name


class TooManyFilesError(TesseraError):
	"""More files were submitted at once than allowed."""

	def __init__(self, count: int, limit: int) -> None:
		super().__init__(f"Too many files: {count} submitted, at most {limit} allowed")
		self.count = count
		self.limit = limit
