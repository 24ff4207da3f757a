"""
HTTP API for Family Calendar.

FastAPI application exposing the reconciled calendar and write routing.
"""
