"""
HTTP interface: FastAPI routes and dependencies.
"""
