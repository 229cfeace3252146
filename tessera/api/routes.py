from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from typing import List
import asyncio
import logging

from tessera.core.config import settings
from tessera.core.exceptions import DuplicateFileError, TooManyFilesError, UnsupportedFileError
from tessera.schemas import EnqueueResponse, JobResponse, PendingResponse, ProcessResponse
from tessera.services.orchestrator import UploadOrchestrator, get_orchestrator
from tessera.services.storage import UploadSource, discard_staged, save_upload
from tessera.services.store import JobStateStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter()

# Background processing tasks, kept referenced until they finish
_background: set = set()


@router.get("/jobs", response_model=List[JobResponse])
async def list_jobs(store: JobStateStore = Depends(get_store)) -> List[JobResponse]:
	return [JobResponse.from_job(job) for job in store.read_all()]


@router.get("/jobs/{file_name}", response_model=JobResponse)
async def get_job(file_name: str, store: JobStateStore = Depends(get_store)) -> JobResponse:
	job = store.get(file_name)
	if job is None:
		raise HTTPException(status_code=404, detail="Job not found")
	return JobResponse.from_job(job)


@router.get("/files/pending", response_model=PendingResponse)
async def list_pending(orchestrator: UploadOrchestrator = Depends(get_orchestrator)) -> PendingResponse:
	return PendingResponse(pending=orchestrator.pending)


@router.post("/files", response_model=EnqueueResponse, status_code=status.HTTP_201_CREATED)
async def enqueue_files(
	files: List[UploadFile] = File(...),
	orchestrator: UploadOrchestrator = Depends(get_orchestrator),
) -> EnqueueResponse:
	# Reject oversized batches before touching the disk
	if len(files) > settings.MAX_FILES_PER_BATCH:
		raise HTTPException(status_code=400, detail=f"At most {settings.MAX_FILES_PER_BATCH} files per request")

	sources: List[UploadSource] = []
	try:
		for f in files:
			sources.append(await save_upload(f, settings.STAGING_DIR))
	except Exception as e:
		logger.exception("staging failed", extra={"staged": len(sources)})
		discard_staged(sources)
		raise HTTPException(status_code=500, detail=f"Upload failed: {e}") from e

	try:
		queued = orchestrator.enqueue(sources)
	except (UnsupportedFileError, TooManyFilesError) as e:
		discard_staged(sources)
		raise HTTPException(status_code=400, detail=str(e))
	except DuplicateFileError as e:
		discard_staged(sources)
		raise HTTPException(status_code=409, detail=str(e))
	return EnqueueResponse(queued=queued)


@router.post("/process", response_model=ProcessResponse, status_code=status.HTTP_202_ACCEPTED)
async def process_files(orchestrator: UploadOrchestrator = Depends(get_orchestrator)) -> ProcessResponse:
	triggered = len(orchestrator.pending)

	# Skip background if disabled via settings
	if triggered and not settings.DISABLE_BACKGROUND:
		task = asyncio.create_task(orchestrator.process_queued())
		_background.add(task)
		task.add_done_callback(_background.discard)
		logger.info(f"Processing {triggered} queued file(s)")
	return ProcessResponse(triggered=triggered)
