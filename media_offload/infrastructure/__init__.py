"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: Object storage (S3 and S3-compatible services)
- options: Persisted offload settings
- media: Host-side asset records

These wrappers translate between external formats and our domain models.
"""
