"""Registry (SAPI) client with bounded, fixed-delay retries."""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Callable, Optional

import requests

from zone_setup.errors import DirectoryError

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 30
DEFAULT_RETRY_DELAY = 2.0
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 45.0


class _Retryable(Exception):
    """Internal marker for a failed attempt that may succeed if repeated."""


class DirectoryClient:
    """Reads instance metadata and registry records."""

    def __init__(
        self,
        registry_url: str,
        session: Optional[requests.Session] = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        attempts: int = DEFAULT_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not registry_url:
            raise DirectoryError("registry URL is required")
        if attempts < 1:
            raise DirectoryError("attempts must be >= 1")
        self._url = registry_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = (connect_timeout, read_timeout)
        self._attempts = attempts
        self._retry_delay = retry_delay
        self._sleep = sleep

    @property
    def url(self) -> str:
        return self._url

    # -- metadata download -------------------------------------------------

    def download_metadata(
        self, instance_id: str, cache_path: str, has_admin_nic: bool = True
    ) -> Optional[dict]:
        """Download this instance's metadata and atomically replace the cache file.

        Returns the metadata, or None when the download was skipped because
        the instance has no admin NIC. A present-but-empty metadata object is
        fatal on the spot; everything else is retried up to the attempt limit.
        """
        if not has_admin_nic:
            logger.warning("Skipping download of registry metadata: no admin NIC")
            return None

        cache = Path(cache_path)
        tmp = cache.with_name(cache.name + ".tmp")
        url = f"{self._url}/configs/{instance_id}"
        logger.info("Downloading registry metadata to %s", cache)

        for attempt in range(1, self._attempts + 1):
            _discard(tmp)
            try:
                metadata = self._fetch_metadata(url)
            except _Retryable as e:
                logger.warning(
                    "Metadata download attempt %d/%d failed: %s",
                    attempt,
                    self._attempts,
                    e,
                )
                if attempt < self._attempts:
                    self._sleep(self._retry_delay)
                continue

            try:
                cache.parent.mkdir(parents=True, exist_ok=True)
                tmp.write_text(json.dumps(metadata, indent=2) + "\n", encoding="utf-8")
                os.replace(tmp, cache)
            except OSError as e:
                _discard(tmp)
                raise DirectoryError(f"failed to write metadata cache {cache}: {e}") from e
            logger.info("Downloaded registry metadata (%d keys)", len(metadata))
            return metadata

        _discard(tmp)
        raise DirectoryError(
            f"failed to download metadata from {url} after {self._attempts} attempts"
        )

    def _fetch_metadata(self, url: str) -> dict:
        try:
            response = self._session.request("GET", url, timeout=self._timeout)
        except requests.RequestException as e:
            raise _Retryable(str(e)[:256]) from e
        if response.status_code >= 400:
            raise _Retryable(f"http_{response.status_code}")
        try:
            document = response.json()
        except ValueError as e:
            raise _Retryable(f"invalid JSON: {e}") from e
        if not isinstance(document, dict) or "metadata" not in document:
            raise _Retryable("response has no 'metadata' field")

        metadata = document["metadata"]
        if not metadata:
            raise DirectoryError(f"empty metadata returned by {url}")
        if not isinstance(metadata, dict):
            raise _Retryable("'metadata' is not an object")
        return metadata

    # -- registry resources ------------------------------------------------

    def get_config(self, instance_id: str) -> dict:
        return self._request("GET", f"/configs/{instance_id}")

    def list_applications(self, name: Optional[str] = None) -> list[dict]:
        return self._request("GET", "/applications", params=_params(name=name))

    def list_services(
        self, name: Optional[str] = None, application_uuid: Optional[str] = None
    ) -> list[dict]:
        return self._request(
            "GET",
            "/services",
            params=_params(name=name, application_uuid=application_uuid),
        )

    def list_instances(self, service_uuid: Optional[str] = None) -> list[dict]:
        return self._request("GET", "/instances", params=_params(service_uuid=service_uuid))

    def get_instance(self, uuid: str) -> Optional[dict]:
        return self._request("GET", f"/instances/{uuid}", missing_ok=True)

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        missing_ok: bool = False,
    ) -> Any:
        """Issue one JSON call, retrying transport errors and 5xx responses."""
        url = f"{self._url}{path}"
        last_error = ""
        for attempt in range(1, self._attempts + 1):
            try:
                response = self._session.request(method, url, params=params, timeout=self._timeout)
            except requests.RequestException as e:
                last_error = str(e)[:256]
            else:
                if response.status_code == 404 and missing_ok:
                    return None
                if response.status_code < 400:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise DirectoryError(f"{method} {url}: invalid JSON: {e}") from e
                if response.status_code < 500:
                    raise DirectoryError(
                        f"{method} {url} rejected: http_{response.status_code}: "
                        f"{_response_text(response)}"
                    )
                last_error = f"http_{response.status_code}"

            logger.warning(
                "%s %s attempt %d/%d failed: %s", method, url, attempt, self._attempts, last_error
            )
            if attempt < self._attempts:
                self._sleep(self._retry_delay)

        raise DirectoryError(f"{method} {url} failed after {self._attempts} attempts: {last_error}")


def _discard(tmp: Path) -> None:
    try:
        tmp.unlink(missing_ok=True)
    except NotADirectoryError:
        # parent is not a directory, so there is no temp file
        pass
    except OSError as e:
        raise DirectoryError(f"failed to remove stale {tmp}: {e}") from e


def _params(**kwargs: Optional[str]) -> dict:
    return {k: v for k, v in kwargs.items() if v}


def _response_text(response: Any) -> str:
    try:
        return str(response.text)[:256]
    except Exception:
        return "<unreadable>"
