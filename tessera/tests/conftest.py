import asyncio
import json
import uuid
from typing import Dict, List, Optional, Tuple

import httpx
import pytest
from fastapi import FastAPI, File, Form, UploadFile
from fastapi.responses import PlainTextResponse
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK
from websockets.frames import Close

from tessera.services.channel import ProgressChannel
from tessera.services.store import JobStateStore
from tessera.services.uploader import ChunkUploader

UPLOAD_URL = "http://backend.test/upload"
PROGRESS_URL = "ws://backend.test/ws/"


class FakeIngestionServer:
	"""In-process stand-in for the chunk ingestion endpoint."""

	def __init__(self) -> None:
		self.received: List[dict] = []
		self.failures: Dict[Tuple[str, int], Tuple[int, str]] = {}
		self.omit_job_id = False
		self.job_ids: Dict[str, str] = {}
		self.app = FastAPI()
		self.app.post("/upload")(self._upload)

	def fail(self, file_name: str, chunk_index: int, status_code: int = 500, text: str = "Failed to write chunk") -> None:
		self.failures[(file_name, chunk_index)] = (status_code, text)

	async def _upload(
		self,
		chunk: UploadFile = File(...),
		fileName: str = Form(...),
		chunkIndex: int = Form(...),
		totalChunks: int = Form(...),
	):
		data = await chunk.read()
		failure = self.failures.get((fileName, chunkIndex))
		if failure is not None:
			return PlainTextResponse(failure[1], status_code=failure[0])

		self.received.append({
			"file_name": fileName,
			"chunk_index": chunkIndex,
			"total_chunks": totalChunks,
			"size": len(data),
			"data": data,
		})
		if chunkIndex == totalChunks - 1 and not self.omit_job_id:
			job_id = str(uuid.uuid4())
			self.job_ids[fileName] = job_id
			return {"job_id": job_id}
		return {"status": "chunk received"}

	def chunks_for(self, file_name: str) -> List[dict]:
		return [r for r in self.received if r["file_name"] == file_name]


HANG = object()


class FakeConnection:
	"""
	Scripted websocket connection.

	``frames`` are returned by ``recv`` in order. A dict is sent as JSON, an
	exception instance is raised, ``HANG`` blocks forever. When the script runs
	out the server closes the connection normally.
	"""

	def __init__(self, frames: list) -> None:
		self.frames = list(frames)
		self.delivered = 0
		self.closed = False

	async def __aenter__(self):
		return self

	async def __aexit__(self, exc_type, exc, tb):
		self.closed = True
		return False

	async def recv(self):
		if not self.frames:
			raise ConnectionClosedOK(Close(1000, ""), Close(1000, ""), rcvd_then_sent=True)
		frame = self.frames.pop(0)
		if frame is HANG:
			await asyncio.Event().wait()
		if isinstance(frame, BaseException):
			raise frame
		self.delivered += 1
		return json.dumps(frame) if isinstance(frame, (dict, list)) else frame

	async def close(self) -> None:
		self.closed = True


class FakeConnector:
	"""Hands out scripted connections by job id and records every URL opened."""

	def __init__(self, base_url: str = PROGRESS_URL) -> None:
		self.base_url = base_url
		self.scripts: Dict[str, list] = {}
		self.default: Optional[list] = None
		self.opened: List[str] = []
		self.connections: Dict[str, FakeConnection] = {}

	def script(self, job_id: str, frames: list) -> None:
		self.scripts[job_id] = frames

	def __call__(self, url: str) -> FakeConnection:
		self.opened.append(url)
		job_id = url[len(self.base_url):]
		frames = self.scripts.get(job_id, self.default if self.default is not None else [])
		connection = FakeConnection(frames)
		self.connections[job_id] = connection
		return connection


def abnormal_close() -> ConnectionClosedError:
	return ConnectionClosedError(Close(1011, "internal error"), None)


def completed_frames(result=(3, 1, 4)) -> list:
	return [
		{"progress": 40, "status": "in-progress"},
		{"progress": 100, "status": "completed", "result": list(result)},
	]


@pytest.fixture
def store():
	return JobStateStore()


@pytest.fixture
def ingestion():
	return FakeIngestionServer()


@pytest.fixture
async def http_client(ingestion):
	async with httpx.AsyncClient(transport=httpx.ASGITransport(app=ingestion.app), base_url="http://backend.test") as client:
		yield client


@pytest.fixture
def uploader(http_client, store):
	return ChunkUploader(http_client, store, upload_url=UPLOAD_URL, chunk_size=10)


@pytest.fixture
def connector():
	return FakeConnector()


@pytest.fixture
def channel(store, connector):
	return ProgressChannel(store, base_url=PROGRESS_URL, connect=connector, idle_timeout=1.0)
