"""URL template resolution."""

from callback_dispatch.infrastructure.resolution.url_resolver import DefaultCallbackUrlResolver

__all__ = ["DefaultCallbackUrlResolver"]
