"""
Provider backend package for Episodarr.

This package bundles the gogoanime mirror resolver, the search parsers and
title matcher, and the Playwright-based capture sessions that turn an embed
page into proxied stream URLs.
"""

__all__ = ["browser", "capture", "errors", "gogoanime", "matching", "mirrors", "models", "parsing"]
