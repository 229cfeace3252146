import os
import logging
from typing import List

from dotenv import load_dotenv

from tessera.core.constants import (
	DEFAULT_ALLOWED_EXTENSIONS,
	DEFAULT_CHUNK_SIZE,
	DEFAULT_FEED_IDLE_TIMEOUT,
	DEFAULT_HTTP_TIMEOUT,
	DEFAULT_MAX_FILES_PER_BATCH,
	DEFAULT_PROGRESS_URL,
	DEFAULT_UPLOAD_CONCURRENCY,
	DEFAULT_UPLOAD_URL,
	STAGING_DIR,
)

load_dotenv()


def _split_list(raw: str) -> List[str]:
	return [item.strip() for item in raw.split(",") if item.strip()]


def _normalize_extensions(raw: str) -> List[str]:
	"""Lower-case extensions and make sure each one starts with a dot."""
	extensions = []
	for ext in _split_list(raw):
		ext = ext.lower()
		if not ext.startswith("."):
			ext = "." + ext
		extensions.append(ext)
	return extensions


def setup_logging() -> None:
	"""Setup logging configuration."""
	logging.basicConfig(
		level=os.getenv("LOG_LEVEL", "INFO").upper(),
		format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
		handlers=[
			logging.StreamHandler(),
		]
	)

	# Transport libraries log every request/frame at INFO/DEBUG
	logging.getLogger('httpx').setLevel(logging.WARNING)
	logging.getLogger('httpcore').setLevel(logging.WARNING)
	logging.getLogger('websockets').setLevel(logging.WARNING)


class Settings:
	def __init__(self) -> None:
		# Backend endpoints
		self.UPLOAD_URL = os.getenv("UPLOAD_URL", DEFAULT_UPLOAD_URL)
		self.PROGRESS_URL = os.getenv("PROGRESS_URL", DEFAULT_PROGRESS_URL)

		# Upload tuning
		self.CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", str(DEFAULT_CHUNK_SIZE)))
		self.UPLOAD_CONCURRENCY = max(1, int(os.getenv("UPLOAD_CONCURRENCY", str(DEFAULT_UPLOAD_CONCURRENCY))))
		self.HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", str(DEFAULT_HTTP_TIMEOUT)))

		# Seconds without a feed frame before the job is marked as failed; <= 0 waits forever
		self.FEED_IDLE_TIMEOUT = float(os.getenv("FEED_IDLE_TIMEOUT", str(DEFAULT_FEED_IDLE_TIMEOUT)))

		# Enqueue constraints
		self.MAX_FILES_PER_BATCH = int(os.getenv("MAX_FILES_PER_BATCH", str(DEFAULT_MAX_FILES_PER_BATCH)))
		self.ALLOWED_EXTENSIONS = _normalize_extensions(
			os.getenv("ALLOWED_EXTENSIONS", ",".join(DEFAULT_ALLOWED_EXTENSIONS))
		)
		self.STAGING_DIR = os.getenv("STAGING_DIR", STAGING_DIR)

		# HTTP surface
		self.CORS_ORIGINS = _split_list(os.getenv("CORS_ORIGINS", "*"))

		# Testing / runtime flags
		self.DISABLE_BACKGROUND = os.getenv("DISABLE_BACKGROUND", "0") == "1"

	@property
	def feed_idle_timeout(self):
		"""Idle timeout in seconds, or None when disabled."""
		return self.FEED_IDLE_TIMEOUT if self.FEED_IDLE_TIMEOUT > 0 else None


# Setup logging when module is imported
setup_logging()
settings = Settings()
