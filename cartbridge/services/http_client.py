"""Outbound HTTP helpers shared by file downloads and refund authorisation."""
from __future__ import annotations

import requests

MAX_REDIRECTS = 5
DEFAULT_TIMEOUT = 60

DOWNLOAD_HEADERS = {
    "Accept-Language": "*",
    "User-Agent": "Mozilla/5.0 (Windows; U; Windows NT 5.1; en-US; rv:1.8.1.1) Gecko/20061204 Firefox/2.0.0.1",
}


def new_session(max_redirects: int = MAX_REDIRECTS) -> requests.Session:
    session = requests.Session()
    session.max_redirects = max_redirects
    return session


__all__ = ["MAX_REDIRECTS", "DEFAULT_TIMEOUT", "DOWNLOAD_HEADERS", "new_session"]
