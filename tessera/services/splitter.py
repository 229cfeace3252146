"""
Chunk boundary arithmetic for uploads.
"""
from dataclasses import dataclass
from typing import List

from tessera.core.constants import MAX_PROGRESS


@dataclass(frozen=True)
class ChunkRange:
	index: int
	start: int
	end: int

	@property
	def size(self) -> int:
		return self.end - self.start


def _check(file_size: int, chunk_size: int) -> None:
	if file_size < 0:
		raise ValueError(f"file_size must be >= 0, got {file_size}")
	if chunk_size <= 0:
		raise ValueError(f"chunk_size must be > 0, got {chunk_size}")


def count_chunks(file_size: int, chunk_size: int) -> int:
	"""Number of chunks for a file. An empty file still takes one (empty) chunk."""
	_check(file_size, chunk_size)
	return max(1, -(-file_size // chunk_size))


def split_chunks(file_size: int, chunk_size: int) -> List[ChunkRange]:
	"""
	Partition ``[0, file_size)`` into contiguous ranges of at most ``chunk_size`` bytes.

	Args:
		file_size: Size of the file in bytes
		chunk_size: Maximum bytes per chunk

	Returns:
		Ordered list of chunk ranges; ``[ChunkRange(0, 0, 0)]`` for an empty file
	"""
	total = count_chunks(file_size, chunk_size)
	return [
		ChunkRange(index=i, start=i * chunk_size, end=min(file_size, (i + 1) * chunk_size))
		for i in range(total)
	]


def upload_progress(index: int, total: int) -> int:
	"""Percentage reported once chunk ``index`` of ``total`` has been acknowledged."""
	if total <= 0 or not 0 <= index < total:
		raise ValueError(f"chunk index {index} out of range for {total} chunks")
	if index == total - 1:
		return MAX_PROGRESS
	# Round up, but 100 is reserved for the final acknowledgment
	return min(MAX_PROGRESS - 1, -(-(index + 1) * MAX_PROGRESS // total))
