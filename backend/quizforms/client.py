"""Async HTTP client for the quiz forms API.

Used by scripts and by :class:`quizforms.attempt.QuizAttempt` and
:class:`quizforms.drafts.FormDraft`.  Eligibility blocks come back as
:class:`quizforms.guard.SubmissionBlocked`; every other error status is
raised as :class:`httpx.HTTPStatusError`.
"""

import logging
from typing import Any, Optional

import httpx

from quizforms.guard import BLOCK_REASONS, SubmissionBlocked, blocked

logger = logging.getLogger(__name__)


def _detail(response: httpx.Response) -> Any:
    try:
        return response.json().get("detail")
    except (ValueError, AttributeError):
        return None


def _raise_for_block(response: httpx.Response) -> None:
    if response.status_code not in (401, 403):
        return
    detail = _detail(response)
    if isinstance(detail, dict) and detail.get("code") in BLOCK_REASONS:
        raise SubmissionBlocked(blocked(detail["code"], detail.get("redirect_to")))


class FormsClient:
    def __init__(self, client: httpx.AsyncClient, token: Optional[str] = None):
        self.client = client
        self.token = token

    @classmethod
    def connect(cls, base_url: str, **kwargs) -> "FormsClient":
        return cls(httpx.AsyncClient(base_url=base_url, **kwargs))

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        response = await self.client.request(
            method, url, headers=self._headers(), **kwargs
        )
        _raise_for_block(response)
        response.raise_for_status()
        return response

    async def register(self, name: str, email: str, password: str) -> dict:
        resp = await self._request(
            "POST",
            "/register",
            json={"name": name, "email": email, "password": password},
        )
        return resp.json()

    async def login(self, email: str, password: str) -> str:
        resp = await self._request(
            "POST", "/login", json={"email": email, "password": password}
        )
        self.token = resp.json()["access_token"]
        return self.token

    async def take(self, form_id: int, time_remaining: Optional[int] = None) -> dict:
        params = {} if time_remaining is None else {"time_remaining": time_remaining}
        resp = await self._request("GET", f"/forms/{form_id}/take", params=params)
        return resp.json()

    async def eligibility(
        self, form_id: int, time_remaining: Optional[int] = None
    ) -> dict:
        params = {} if time_remaining is None else {"time_remaining": time_remaining}
        resp = await self._request("GET", f"/forms/{form_id}/eligibility", params=params)
        return resp.json()

    async def submit(
        self, form_id: int, answers: dict, time_spent: Optional[int] = None
    ) -> dict:
        resp = await self._request(
            "POST",
            f"/forms/{form_id}/submissions",
            json={"answers": answers, "time_spent": time_spent},
        )
        return resp.json()

    async def my_submission(self, form_id: int) -> dict:
        resp = await self._request("GET", f"/forms/{form_id}/submissions/mine")
        return resp.json()

    async def create_form(self, payload: dict) -> dict:
        resp = await self._request("POST", "/forms/", json=payload)
        return resp.json()

    async def save_form(self, form_id: int, payload: dict) -> dict:
        resp = await self._request("PUT", f"/forms/{form_id}", json=payload)
        return resp.json()

    async def autosave_form(self, form_id: int, payload: dict) -> dict:
        resp = await self._request("PUT", f"/forms/{form_id}/autosave", json=payload)
        result = resp.json()
        if not result.get("saved"):
            logger.debug("Autosave of form %s skipped: %s", form_id, result.get("reason"))
        return result

    async def set_status(self, form_id: int, status: str) -> dict:
        resp = await self._request(
            "PUT", f"/forms/{form_id}/status", json={"status": status}
        )
        return resp.json()

    async def report(self, form_id: int) -> dict:
        resp = await self._request("GET", f"/forms/{form_id}/report")
        return resp.json()
