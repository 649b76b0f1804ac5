"""
HTTP client for the job queue service and the worker registry.
All transport and HTTP failures surface as ApiError.
"""

import json
import logging

import requests

from wanly_console.core.constants import (
    ErrorCode, DEFAULT_REQUEST_TIMEOUT_SEC, JobStatus,
)
from wanly_console.core.error_codes import ApiError, code_for_status
from wanly_console.core.models import (
    JobDetail, JobPage, JobSummary, SegmentSummary, WorkerSummary,
)

logger = logging.getLogger(__name__)


class QueueApiClient:
    """
    Thin wrapper over a requests.Session.
    One instance per window; safe to call from the dispatcher's worker threads.
    """

    def __init__(self, api_url: str, registry_url: str, token: str | None = None,
                 timeout: float = DEFAULT_REQUEST_TIMEOUT_SEC,
                 session: requests.Session | None = None):
        self.api_url = api_url.rstrip('/')
        self.registry_url = registry_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    @classmethod
    def from_config(cls, config) -> "QueueApiClient":
        return cls(
            config.api_url,
            config.registry_url,
            token=config.api_token,
            timeout=config.request_timeout_sec,
        )

    # ── Transport ─────────────────────────────────────────────────────

    def _request(self, method: str, url: str, params: dict | None = None,
                 body: dict | None = None):
        try:
            resp = self.session.request(
                method, url, params=params, json=body, timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            raise ApiError(ErrorCode.TIMEOUT, f"{method} {url} timed out")
        except requests.exceptions.ConnectionError:
            raise ApiError(ErrorCode.NETWORK_TRANSIENT,
                           f"Network error connecting to {url}")
        except requests.exceptions.RequestException as e:
            raise ApiError(ErrorCode.REQUEST_FAILED, f"{method} {url} failed: {e}")

        if not 200 <= resp.status_code < 300:
            # Never echo request headers; the token lives there
            error_body = resp.text[:300] if resp.text else "No response body"
            raise ApiError(code_for_status(resp.status_code),
                           f"{method} {url} returned {resp.status_code}: {error_body}",
                           status_code=resp.status_code)

        if resp.status_code == 204 or not resp.content:
            return None

        try:
            return resp.json()
        except (json.JSONDecodeError, ValueError):
            raise ApiError(ErrorCode.BAD_RESPONSE,
                           f"Failed to parse response JSON from {url}")

    def _api(self, path: str) -> str:
        return f"{self.api_url}{path}"

    def _registry(self, path: str) -> str:
        return f"{self.registry_url}{path}"

    @staticmethod
    def _expect(payload, kind: type, url: str):
        if not isinstance(payload, kind):
            raise ApiError(ErrorCode.BAD_RESPONSE,
                           f"Unexpected payload from {url}: {type(payload).__name__}")
        return payload

    # ── Queue ─────────────────────────────────────────────────────────

    def list_jobs(self, status_set=None, limit: int | None = None,
                  offset: int | None = None, sort: str | None = None) -> JobPage:
        """
        Fetch one page of jobs.
        With sort="priority_asc" the items come back in authoritative priority order.
        """
        params = {}
        if limit is not None:
            params['limit'] = limit
        if offset is not None:
            params['offset'] = offset
        if status_set:
            params['status'] = ",".join(status_set)
        if sort:
            params['sort'] = sort

        url = self._api("/jobs")
        payload = self._expect(self._request("GET", url, params=params), dict, url)
        try:
            return JobPage.from_dict(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(ErrorCode.BAD_RESPONSE, f"Malformed job list: {e}")

    def reorder_jobs(self, ids_in_new_order: list[str]) -> list[JobSummary]:
        """Replace the whole priority order. All-or-nothing on the server side."""
        url = self._api("/jobs/reorder")
        payload = self._request("PUT", url, body={'job_ids': list(ids_in_new_order)})
        if payload is None:
            return []
        payload = self._expect(payload, list, url)
        try:
            return [JobSummary.from_dict(d) for d in payload]
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(ErrorCode.BAD_RESPONSE, f"Malformed reorder response: {e}")

    def get_job(self, job_id: str) -> JobDetail:
        url = self._api(f"/jobs/{job_id}")
        payload = self._expect(self._request("GET", url), dict, url)
        try:
            return JobDetail.from_dict(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(ErrorCode.BAD_RESPONSE, f"Malformed job detail: {e}")

    def finalize_job(self, job_id: str) -> JobSummary:
        url = self._api(f"/jobs/{job_id}")
        payload = self._request("PATCH", url, body={'status': JobStatus.FINALIZED})
        return JobSummary.from_dict(self._expect(payload, dict, url))

    def delete_job(self, job_id: str):
        self._request("DELETE", self._api(f"/jobs/{job_id}"))

    def retry_segment(self, segment_id: str) -> SegmentSummary:
        url = self._api(f"/segments/{segment_id}/retry")
        payload = self._request("POST", url)
        return SegmentSummary.from_dict(self._expect(payload, dict, url))

    def delete_segment(self, segment_id: str):
        self._request("DELETE", self._api(f"/segments/{segment_id}"))

    def get_stats(self) -> dict:
        url = self._api("/stats")
        return self._expect(self._request("GET", url), dict, url)

    # ── Registry ──────────────────────────────────────────────────────

    def list_workers(self) -> list[WorkerSummary]:
        url = self._registry("/workers")
        payload = self._expect(self._request("GET", url), list, url)
        return [WorkerSummary.from_dict(d) for d in payload]

    def get_worker(self, worker_id: str) -> WorkerSummary:
        url = self._registry(f"/workers/{worker_id}")
        payload = self._expect(self._request("GET", url), dict, url)
        return WorkerSummary.from_dict(payload)

    def close(self):
        self.session.close()
