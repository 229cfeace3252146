import os
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from fastapi import UploadFile

from tessera.core.config import settings


class UploadSource(ABC):
	"""A readable file to be uploaded in chunks, identified by its name."""

	name: str

	@property
	@abstractmethod
	def size(self) -> int:
		...

	@abstractmethod
	def read_range(self, start: int, end: int) -> bytes:
		...

	def __repr__(self) -> str:
		return f"{type(self).__name__}(name={self.name!r}, size={self.size})"


class PathSource(UploadSource):
	def __init__(self, path: str, name: Optional[str] = None) -> None:
		self.path = path
		self.name = name or os.path.basename(path)

	@property
	def size(self) -> int:
		return os.path.getsize(self.path)

	def read_range(self, start: int, end: int) -> bytes:
		with open(self.path, "rb") as fb:
			fb.seek(start)
			return fb.read(end - start)


class BytesSource(UploadSource):
	def __init__(self, name: str, data: bytes) -> None:
		self.name = name
		self.data = data

	@property
	def size(self) -> int:
		return len(self.data)

	def read_range(self, start: int, end: int) -> bytes:
		return self.data[start:end]


def get_safe_filename(filename: str) -> str:
	"""Replace path separators and other characters unsafe on common filesystems."""
	dangerous_chars = ['<', '>', ':', '"', '|', '?', '*', '\\', '/']
	safe_name = filename
	for char in dangerous_chars:
		safe_name = safe_name.replace(char, '_')
	return safe_name or "upload.dat"


def ensure_directories(directory: Optional[str] = None) -> str:
	directory = directory or settings.STAGING_DIR
	os.makedirs(directory, exist_ok=True)
	return directory


def generate_file_destination(original_filename: str, directory: Optional[str] = None) -> str:
	# Each upload gets its own directory so the original name survives on disk
	staging_id = str(uuid.uuid4())
	dst_dir = os.path.join(ensure_directories(directory), staging_id)
	os.makedirs(dst_dir, exist_ok=True)
	return os.path.join(dst_dir, get_safe_filename(os.path.basename(original_filename)))


async def save_upload(file: UploadFile, directory: Optional[str] = None) -> PathSource:
	name = os.path.basename(file.filename or "")
	dst_path = generate_file_destination(name, directory)

	staged = PathSource(dst_path, name=name)

	# Streaming save to disk
	try:
		with open(dst_path, "wb") as out:
			while True:
				chunk = await file.read(1024 * 1024)
				if not chunk:
					break
				out.write(chunk)
	except Exception:
		discard_staged([staged])
		raise

	return staged


def discard_staged(sources) -> None:
	"""Remove staged copies, e.g. after the orchestrator refused them."""
	for source in sources:
		if not isinstance(source, PathSource):
			continue
		if os.path.exists(source.path):
			os.remove(source.path)
		parent = os.path.dirname(source.path)
		if os.path.isdir(parent) and not os.listdir(parent):
			os.rmdir(parent)
