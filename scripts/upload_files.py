#!/usr/bin/env python3
"""
Upload local files through the chunked pipeline and print each file's final state.
"""
import argparse
import asyncio
import sys
from typing import List

from tessera.core.config import settings
from tessera.core.exceptions import TesseraError
from tessera.schemas.jobs import FileUploadJob, JobStatus
from tessera.services.orchestrator import create_orchestrator
from tessera.services.storage import PathSource
from tessera.services.store import get_store


def parse_args() -> argparse.Namespace:
	parser = argparse.ArgumentParser(
		description="Upload files in chunks and follow their jobs to completion"
	)
	parser.add_argument("paths", nargs="+", help="Files to upload")
	parser.add_argument(
		"--chunk-size",
		dest="chunk_size",
		type=int,
		help="Bytes per chunk (defaults to CHUNK_SIZE)",
		default=None
	)
	parser.add_argument(
		"--concurrency",
		dest="concurrency",
		type=int,
		help="Files uploaded at the same time (defaults to UPLOAD_CONCURRENCY)",
		default=None
	)
	return parser.parse_args()


def _print_job(job: FileUploadJob) -> None:
	line = f"{job.file_name}: {job.status.value} {job.display_progress}%"
	if job.status == JobStatus.COMPLETED:
		line += f" result={job.result}"
	elif job.status == JobStatus.ERROR:
		line += f" ({job.error})"
	print(line)


async def run(paths: List[str], chunk_size, concurrency) -> int:
	orchestrator = create_orchestrator()
	if chunk_size:
		orchestrator.uploader.chunk_size = chunk_size
	if concurrency:
		orchestrator.concurrency = max(1, concurrency)

	try:
		orchestrator.enqueue(PathSource(path) for path in paths)
		await orchestrator.process_queued()
		await orchestrator.wait_for_feeds()
	finally:
		await orchestrator.close()
		await orchestrator.uploader.client.aclose()

	jobs = get_store().read_all()
	for job in jobs:
		_print_job(job)
	return 0 if all(job.status == JobStatus.COMPLETED for job in jobs) else 1


def main() -> int:
	args = parse_args()
	print(f"Uploading to {settings.UPLOAD_URL}, progress from {settings.PROGRESS_URL}")
	try:
		return asyncio.run(run(args.paths, args.chunk_size, args.concurrency))
	except (TesseraError, OSError) as exc:
		print(f"Upload aborted: {exc}", file=sys.stderr)
		return 2


if __name__ == "__main__":
	sys.exit(main())
