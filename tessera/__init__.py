"""
Tessera - chunked upload and job progress client.
"""
