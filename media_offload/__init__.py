"""
Media Offload - serve host media uploads from S3-compatible object storage.

This package contains the complete application:
- core: Framework-agnostic offloading logic (keys, URLs, uploads)
- infrastructure: Object storage, settings persistence, asset records
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
