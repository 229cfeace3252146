import pytest

from tessera.core.exceptions import MalformedMessage
from tessera.schemas.jobs import JobStatus
from tessera.services.channel import ProgressChannel, SubscriptionState, parse_message

from .conftest import HANG, PROGRESS_URL, abnormal_close, completed_frames


def _hand_off(store, file_name="doc.txt", job_id="job-1"):
	store.upsert(file_name, status=JobStatus.UPLOADING, progress=100)
	store.update_by_file_name(file_name, job_id=job_id, status=JobStatus.IN_PROGRESS, progress=0)


def test_parse_progress_frame():
	message = parse_message('{"progress": 40, "status": "in-progress"}')
	assert message.status == JobStatus.IN_PROGRESS
	assert message.progress == 40
	assert not message.is_terminal


def test_parse_completed_frame():
	message = parse_message(b'{"progress": 100, "status": "completed", "result": [3, 1, 4]}')
	assert message.is_terminal
	assert message.as_patch() == {"status": JobStatus.COMPLETED, "progress": 100, "result": [3, 1, 4]}


def test_parse_error_frames():
	assert parse_message('{"error": "job not found"}').as_patch() == {
		"status": JobStatus.ERROR,
		"error": "job not found",
	}
	message = parse_message('{"jobId": "j", "status": "error", "error": "unsupported file type"}')
	assert message.is_terminal
	assert message.error == "unsupported file type"


@pytest.mark.parametrize("raw", [
	"not json",
	"[1, 2, 3]",
	'{"progress": 10}',
	'{"progress": 10, "status": "dancing"}',
	'{"progress": 10, "status": "uploading"}',
	'{"progress": 140, "status": "in-progress"}',
	'{"progress": 100, "status": "completed"}',
	'{"progress": 100, "status": "completed", "result": []}',
])
def test_malformed_frames(raw):
	with pytest.raises(MalformedMessage):
		parse_message(raw)


def test_url_for_appends_job_id(channel):
	assert channel.url_for("abc-123") == PROGRESS_URL + "abc-123"


@pytest.mark.asyncio
async def test_progress_then_completed(channel, connector, store):
	_hand_off(store)
	connector.script("job-1", completed_frames())
	seen = []
	store.add_listener(lambda job: seen.append((job.status, job.progress)))

	subscription = await channel.listen("job-1")

	job = store.get("doc.txt")
	assert job.status == JobStatus.COMPLETED
	assert job.progress == 100
	assert job.result == [3, 1, 4]
	assert seen == [(JobStatus.IN_PROGRESS, 40), (JobStatus.COMPLETED, 100)]
	assert subscription.state == SubscriptionState.CLOSED
	assert connector.opened == [PROGRESS_URL + "job-1"]


@pytest.mark.asyncio
async def test_no_frames_read_after_completed(channel, connector, store):
	_hand_off(store)
	connector.script("job-1", completed_frames() + [{"progress": 5, "status": "in-progress"}])

	await channel.listen("job-1")

	connection = connector.connections["job-1"]
	assert connection.closed
	assert connection.delivered == 2
	assert store.get("doc.txt").status == JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_malformed_frame_is_skipped(channel, connector, store):
	_hand_off(store)
	connector.script("job-1", ["{oops", {"progress": 50, "status": "in-progress"}] + completed_frames()[1:])

	subscription = await channel.listen("job-1")

	assert subscription.messages_received == 3
	assert subscription.messages_skipped == 1
	assert store.get("doc.txt").status == JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_progress_never_moves_backwards(channel, connector, store):
	_hand_off(store)
	connector.script("job-1", [
		{"progress": 60, "status": "in-progress"},
		{"progress": 30, "status": "in-progress"},
		{"progress": 70, "status": "in-progress"},
		HANG,
	])
	seen = []
	store.add_listener(lambda job: seen.append(job.progress))
	channel.idle_timeout = 0.05

	await channel.listen("job-1")

	assert seen[:3] == [60, 60, 70]


@pytest.mark.asyncio
async def test_server_close_before_completion_marks_error(channel, connector, store):
	_hand_off(store)
	connector.script("job-1", [{"progress": 40, "status": "in-progress"}])

	subscription = await channel.listen("job-1")

	job = store.get("doc.txt")
	assert job.status == JobStatus.ERROR
	assert job.job_id == "job-1"
	assert "closed before a terminal status" in job.error
	assert subscription.state == SubscriptionState.CLOSED


@pytest.mark.asyncio
async def test_transport_failure_marks_error(channel, connector, store):
	_hand_off(store)
	connector.script("job-1", [{"progress": 40, "status": "in-progress"}, abnormal_close()])

	await channel.listen("job-1")

	assert store.get("doc.txt").status == JobStatus.ERROR


@pytest.mark.asyncio
async def test_connect_failure_marks_error(store):
	_hand_off(store)

	def refuse(url):
		raise ConnectionRefusedError("connection refused")

	channel = ProgressChannel(store, base_url=PROGRESS_URL, connect=refuse)
	await channel.listen("job-1")

	job = store.get("doc.txt")
	assert job.status == JobStatus.ERROR
	assert "connection refused" in job.error


@pytest.mark.asyncio
async def test_idle_feed_times_out(channel, connector, store):
	_hand_off(store)
	connector.script("job-1", [{"progress": 10, "status": "in-progress"}, HANG])
	channel.idle_timeout = 0.05

	await channel.listen("job-1")

	job = store.get("doc.txt")
	assert job.status == JobStatus.ERROR
	assert "no progress" in job.error


@pytest.mark.asyncio
async def test_server_error_frame_ends_feed(channel, connector, store):
	_hand_off(store)
	connector.script("job-1", [{"error": "job not found"}, {"progress": 10, "status": "in-progress"}])

	await channel.listen("job-1")

	job = store.get("doc.txt")
	assert job.status == JobStatus.ERROR
	assert job.error == "job not found"
	assert connector.connections["job-1"].delivered == 1


@pytest.mark.asyncio
async def test_subscription_yields_events_and_closes(channel, connector):
	connector.script("job-9", completed_frames(result=[1, 2]))
	subscription = channel.subscribe("job-9")
	assert subscription.state == SubscriptionState.PENDING

	events = [message async for message in subscription]

	assert [e.status for e in events] == [JobStatus.IN_PROGRESS, JobStatus.COMPLETED]
	assert subscription.last_message.result == [1, 2]
	assert subscription.state == SubscriptionState.CLOSED

	with pytest.raises(RuntimeError):
		async for _ in subscription:
			pass
