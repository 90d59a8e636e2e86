"""Pydantic request/response models for the HTTP API, one module per resource."""
