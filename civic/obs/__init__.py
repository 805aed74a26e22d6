"""Observability package bootstrap."""

from __future__ import annotations

from fastapi import FastAPI

from civic.obs import logging as obs_logging
from civic.obs import middleware
from civic.settings import settings

_logging_configured = False


def init(app: FastAPI) -> None:
	"""Install request instrumentation and configure JSON logging once per process."""
	global _logging_configured
	middleware.install(app)
	if settings.obs_enabled and not _logging_configured:
		obs_logging.configure_logging()
		_logging_configured = True


__all__ = ["init"]
