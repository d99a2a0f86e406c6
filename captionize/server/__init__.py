"""HTTP API for captionize (FastAPI app, pydantic models).

Run with ``captionize serve`` or ``captionize-api``; docs at /docs.
"""
