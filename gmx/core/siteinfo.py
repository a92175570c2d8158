"""Cached site -> machines directory backed by the siteinfo API"""
import logging
import threading
from typing import Dict, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from .metrics import error_count

logger = logging.getLogger(__name__)

_SITES_ADAPTER = TypeAdapter(Dict[str, List[str]])


class SiteinfoError(Exception):
    pass


class SiteNotFoundError(SiteinfoError):
    pass


class SiteDirectory:
    """
    Holds the last successfully loaded siteinfo document.

    Lookups and reloads share a lock so a reload never exposes a half
    replaced mapping. A failed reload keeps the previous data.
    """

    def __init__(self, project: str, url_template: str, client: Optional[httpx.Client] = None, timeout: float = 30.0):
        self.project = project
        self.url = url_template.format(project=project)
        self._client = client
        self._timeout = timeout
        self._lock = threading.Lock()
        self._sites: Dict[str, List[str]] = {}

    def _fetch(self) -> bytes:
        if self._client is not None:
            response = self._client.get(self.url)
        else:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.get(self.url)
        response.raise_for_status()
        return response.content

    def reload(self) -> None:
        """fetch siteinfo and swap it in. Raises SiteinfoError on failure"""
        try:
            sites = _SITES_ADAPTER.validate_json(self._fetch())
        except httpx.HTTPError as e:
            error_count.labels("reload", "siteinfo.reload").inc()
            raise SiteinfoError(f"Failed to fetch siteinfo from {self.url}: {e}") from e
        except ValidationError as e:
            error_count.labels("unmarshaljson", "siteinfo.reload").inc()
            raise SiteinfoError(f"Malformed siteinfo document from {self.url}: {e}") from e

        with self._lock:
            self._sites = sites
        logger.info(f"Successfully [re]loaded siteinfo data ({len(sites)} sites)")

    def machines(self, site: str) -> List[str]:
        """node names (e.g. mlab1, mlab2) at a site"""
        with self._lock:
            machines = self._sites.get(site)
        if machines is None:
            raise SiteNotFoundError(f"Site not found: {site}")
        return list(machines)

    def sites(self) -> List[str]:
        with self._lock:
            return sorted(self._sites)
