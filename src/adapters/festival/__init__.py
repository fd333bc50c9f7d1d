"""Festival backend adapters - HTTP client for the REST API."""

from .http import FestivalApiError, HttpFestivalApi

__all__ = ["FestivalApiError", "HttpFestivalApi"]
