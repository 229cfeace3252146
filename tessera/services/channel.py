"""
Progress feed for server-side jobs.

One websocket per job. The client never writes to it; it reads progress
frames until the job reports a terminal status and then closes the socket.
Dropped connections are not re-opened.
"""
import asyncio
import json
import logging
from enum import Enum
from typing import AsyncIterator, Callable, Optional
from urllib.parse import quote

from pydantic import ValidationError
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from tessera.core.config import settings
from tessera.core.exceptions import ChannelTransportError, MalformedMessage
from tessera.schemas.jobs import JobStatus, ProgressMessage
from tessera.services.store import JobStateStore

logger = logging.getLogger(__name__)


class SubscriptionState(str, Enum):
	PENDING = "pending"
	OPEN = "open"
	CLOSED = "closed"


def parse_message(raw) -> ProgressMessage:
	try:
		payload = json.loads(raw)
	except ValueError as e:
		raise MalformedMessage(f"feed frame is not JSON: {e}", raw=raw) from e
	try:
		return ProgressMessage.model_validate(payload)
	except ValidationError as e:
		raise MalformedMessage(f"invalid feed frame: {e.error_count()} error(s)", raw=raw) from e


class ProgressSubscription:
	"""
	A single job's feed connection.

	Iterating the subscription opens the socket and yields parsed frames. The
	last frame yielded is the terminal one, after which the socket is closed.
	Any other way the feed ends raises ChannelTransportError.
	"""

	def __init__(self, job_id: str, url: str, connect: Callable, idle_timeout: Optional[float] = None) -> None:
		self.job_id = job_id
		self.url = url
		self.idle_timeout = idle_timeout
		self.state = SubscriptionState.PENDING
		self.messages_received = 0
		self.messages_skipped = 0
		self.last_message: Optional[ProgressMessage] = None
		self._connect = connect
		self._iterator = None

	def __aiter__(self) -> AsyncIterator[ProgressMessage]:
		self._iterator = self._events()
		return self._iterator

	async def aclose(self) -> None:
		"""Close the socket if iteration stopped before the feed ended."""
		if self._iterator is not None:
			await self._iterator.aclose()

	async def _events(self) -> AsyncIterator[ProgressMessage]:
		if self.state != SubscriptionState.PENDING:
			raise RuntimeError(f"subscription for job {self.job_id} was already used")

		try:
			async with self._connect(self.url) as ws:
				self.state = SubscriptionState.OPEN
				logger.info("feed opened", extra={"job_id": self.job_id})
				while True:
					raw = await self._receive(ws)
					self.messages_received += 1
					try:
						message = parse_message(raw)
					except MalformedMessage as e:
						self.messages_skipped += 1
						logger.warning(f"Skipping feed frame for job {self.job_id}: {e}")
						continue

					self.last_message = message
					if message.is_terminal:
						await ws.close()
						self.state = SubscriptionState.CLOSED
						logger.info("feed closed", extra={"job_id": self.job_id, "status": message.status.value})
						yield message
						return
					yield message
		except ConnectionClosed as e:
			raise ChannelTransportError(f"feed for job {self.job_id} closed before a terminal status: {e}") from e
		except (WebSocketException, OSError) as e:
			raise ChannelTransportError(f"feed for job {self.job_id} failed: {e}") from e
		finally:
			self.state = SubscriptionState.CLOSED

	async def _receive(self, ws):
		try:
			return await asyncio.wait_for(ws.recv(), timeout=self.idle_timeout)
		except asyncio.TimeoutError as e:
			raise ChannelTransportError(
				f"no progress for job {self.job_id} in {self.idle_timeout:g}s"
			) from e


class ProgressChannel:
	def __init__(
		self,
		store: JobStateStore,
		base_url: Optional[str] = None,
		connect: Optional[Callable] = None,
		idle_timeout: Optional[float] = None,
	) -> None:
		self.store = store
		self.base_url = base_url or settings.PROGRESS_URL
		self.connect = connect or ws_connect
		self.idle_timeout = idle_timeout

	def url_for(self, job_id: str) -> str:
		return f"{self.base_url}{quote(job_id, safe='')}"

	def subscribe(self, job_id: str) -> ProgressSubscription:
		return ProgressSubscription(job_id, self.url_for(job_id), self.connect, self.idle_timeout)

	async def listen(self, job_id: str) -> ProgressSubscription:
		"""Follow the feed for ``job_id`` and fold every frame into the store."""
		subscription = self.subscribe(job_id)
		try:
			async for message in subscription:
				self._apply(job_id, message)
		except ChannelTransportError as e:
			logger.error(f"Progress feed failed for job {job_id}: {e}")
			self.store.update_by_job_id(job_id, status=JobStatus.ERROR, error=str(e))
		finally:
			await subscription.aclose()
		return subscription

	def _apply(self, job_id: str, message: ProgressMessage) -> None:
		patch = message.as_patch()
		current = self.store.get_by_job_id(job_id)
		# Server-phase progress only moves forward
		if (
			current is not None
			and current.status == JobStatus.IN_PROGRESS
			and message.status == JobStatus.IN_PROGRESS
			and patch.get("progress", current.progress) < current.progress
		):
			patch["progress"] = current.progress
		self.store.update_by_job_id(job_id, **patch)
