"""
Constants for Tessera chunked upload client.
"""

# Upload constants
DEFAULT_CHUNK_SIZE = 10 * 1024 * 1024  # 10MB per chunk
DEFAULT_UPLOAD_CONCURRENCY = 1
DEFAULT_HTTP_TIMEOUT = 60.0

# Backend endpoints
DEFAULT_UPLOAD_URL = "http://localhost:3130/upload"
DEFAULT_PROGRESS_URL = "ws://localhost:3130/ws/"

# Progress feed constants
DEFAULT_FEED_IDLE_TIMEOUT = 30.0

# Enqueue constraints
DEFAULT_MAX_FILES_PER_BATCH = 10
DEFAULT_ALLOWED_EXTENSIONS = [".html", ".htm", ".txt", ".json", ".xml", ".csv", ".xls", ".xlsx", ".pdf"]

# Multipart field names understood by the ingestion endpoint
FIELD_CHUNK = "chunk"
FIELD_FILE_NAME = "fileName"
FIELD_CHUNK_INDEX = "chunkIndex"
FIELD_TOTAL_CHUNKS = "totalChunks"
RESPONSE_JOB_ID = "job_id"

# Storage constants
STAGING_DIR = "./storage/uploads"

# Progress bounds
MIN_PROGRESS = 0
MAX_PROGRESS = 100
