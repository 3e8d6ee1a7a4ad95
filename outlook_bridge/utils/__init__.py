"""Shared helpers."""

from .singleflight import SingleFlight

__all__ = ["SingleFlight"]
