"""Jewelkit — FastAPI REST API layer.

Modules
-------
main
    FastAPI application with the upload and generate routes and the
    ``main()`` CLI entry point.
models
    Pydantic models for API request and response envelopes.
"""
