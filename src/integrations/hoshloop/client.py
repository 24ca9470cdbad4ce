"""Async httpx client for the Hoshloop REST backend.

Only the endpoints the customer feedback flow needs. Credentials travel in
an explicit ApiContext; an HTTP 401 surfaces as AuthenticationError and the
caller decides what to do with it.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from src.config import settings
from src.events.bus import emit
from src.feedback.errors import SubmissionError
from src.schemas.events import EventType, SystemEvent
from src.schemas.feedback import (
    ApiContext,
    CustomerAuthRequest,
    FeedbackForm,
    MenuCategory,
    MenuItem,
    RestaurantInfo,
    SubmissionPayload,
    SubmissionReceipt,
)

logger = logging.getLogger(__name__)


class HoshloopApiError(Exception):
    """Backend call failed (transport error or non-2xx response)."""

    def __init__(self, message: str, status_code: int | None = None, server_message: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.server_message = server_message


class AuthenticationError(HoshloopApiError):
    """Backend answered 401; the context's token is missing or expired."""


def _server_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        return str(message) if message else None
    return None


class HoshloopClient:
    """Thin async wrapper around the Hoshloop backend.

    Endpoints:
        GET  /restaurants/{id}/public
        GET  /feedback/restaurants/{id}/forms
        GET  /feedback/forms/{id}
        GET  /menu/restaurants/{id}/categories/public
        GET  /menu/restaurants/{id}/items/public
        POST /feedback/forms/{id}/submit
        POST /auth/customer/phone
    """

    def __init__(
        self,
        context: ApiContext | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.context = context or ApiContext()
        self._client = http_client or httpx.AsyncClient(
            base_url=settings.api.hoshloop_api_url.rstrip("/"),
            timeout=httpx.Timeout(settings.api.api_timeout, connect=settings.api.api_connect_timeout),
            headers={"Content-Type": "application/json"},
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        context: ApiContext | None = None,
        json: dict[str, Any] | None = None,
        unwrap: bool = True,
    ) -> Any:
        """Perform one call and return the ``data`` member of the JSON envelope.

        With ``unwrap=False`` the whole JSON body is returned.
        """
        ctx = context or self.context
        await emit(SystemEvent(
            event_type=EventType.EXTERNAL_API_CALL,
            data={"integration": "hoshloop", "method": method, "path": path},
            source_module="integrations.hoshloop.client",
        ))

        try:
            response = await self._client.request(method, path, json=json, headers=ctx.headers())
            response.raise_for_status()
            payload = response.json()

        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            server_message = _server_message(exc.response)
            logger.warning("Hoshloop API HTTP %s for %s %s", status, method, path)
            await emit(SystemEvent(
                event_type=EventType.EXTERNAL_API_RESPONSE,
                data={"integration": "hoshloop", "path": path, "error": f"http_{status}"},
                source_module="integrations.hoshloop.client",
            ))
            error_cls = AuthenticationError if status == httpx.codes.UNAUTHORIZED else HoshloopApiError
            raise error_cls(
                f"{method} {path} returned HTTP {status}",
                status_code=status,
                server_message=server_message,
            ) from exc

        except httpx.HTTPError as exc:
            logger.warning("Hoshloop API transport error for %s %s: %s", method, path, exc)
            await emit(SystemEvent(
                event_type=EventType.EXTERNAL_API_RESPONSE,
                data={"integration": "hoshloop", "path": path, "error": type(exc).__name__},
                source_module="integrations.hoshloop.client",
            ))
            raise HoshloopApiError(f"{method} {path} failed: {exc}") from exc

        except ValueError as exc:
            raise HoshloopApiError(f"{method} {path} returned invalid JSON") from exc

        await emit(SystemEvent(
            event_type=EventType.EXTERNAL_API_RESPONSE,
            data={"integration": "hoshloop", "path": path, "status": response.status_code},
            source_module="integrations.hoshloop.client",
        ))

        if not unwrap:
            return payload
        if not isinstance(payload, dict) or "data" not in payload:
            raise HoshloopApiError(f"{method} {path} response has no data envelope")
        return payload["data"]

    # ── Restaurants & forms ──────────────────────────────────────────

    async def get_restaurant_public(self, restaurant_id: str, context: ApiContext | None = None) -> RestaurantInfo:
        data = await self._request("GET", f"/restaurants/{restaurant_id}/public", context)
        try:
            return RestaurantInfo.model_validate(data)
        except ValidationError as exc:
            raise HoshloopApiError(f"Malformed restaurant {restaurant_id}") from exc

    async def get_feedback_forms(self, restaurant_id: str, context: ApiContext | None = None) -> list[FeedbackForm]:
        data = await self._request("GET", f"/feedback/restaurants/{restaurant_id}/forms", context)
        try:
            return [FeedbackForm.model_validate(item) for item in data or []]
        except ValidationError as exc:
            raise HoshloopApiError(f"Malformed form list for restaurant {restaurant_id}") from exc

    async def get_feedback_form(self, form_id: str, context: ApiContext | None = None) -> FeedbackForm:
        """Fetch a form and its questions (``{form: {...}, questions: [...]}``)."""
        data = await self._request("GET", f"/feedback/forms/{form_id}", context)
        try:
            return FeedbackForm.model_validate({**data["form"], "questions": data.get("questions") or []})
        except (KeyError, TypeError, ValidationError) as exc:
            raise HoshloopApiError(f"Malformed form {form_id}") from exc

    # ── Public menu ──────────────────────────────────────────────────

    async def get_public_menu_categories(
        self, restaurant_id: str, context: ApiContext | None = None
    ) -> list[MenuCategory]:
        data = await self._request("GET", f"/menu/restaurants/{restaurant_id}/categories/public", context)
        try:
            return [MenuCategory.model_validate(item) for item in data or []]
        except ValidationError as exc:
            raise HoshloopApiError(f"Malformed menu categories for restaurant {restaurant_id}") from exc

    async def get_public_menu_items(self, restaurant_id: str, context: ApiContext | None = None) -> list[MenuItem]:
        data = await self._request("GET", f"/menu/restaurants/{restaurant_id}/items/public", context)
        try:
            return [MenuItem.model_validate(item) for item in data or []]
        except ValidationError as exc:
            raise HoshloopApiError(f"Malformed menu items for restaurant {restaurant_id}") from exc

    # ── Submission ───────────────────────────────────────────────────

    async def submit_feedback(
        self,
        form_id: str,
        payload: SubmissionPayload,
        context: ApiContext | None = None,
    ) -> SubmissionReceipt:
        """Store a feedback response.

        Raises:
            SubmissionError: For any failure; the server's own message is
                not interpreted beyond logging.
        """
        try:
            data = await self._request("POST", f"/feedback/forms/{form_id}/submit", context, json=payload.to_wire())
            return SubmissionReceipt.model_validate(data)
        except HoshloopApiError as exc:
            logger.warning("Feedback submission for form %s failed: %s (%s)", form_id, exc, exc.server_message)
            raise SubmissionError(str(exc)) from exc
        except ValidationError as exc:
            raise SubmissionError(f"Submission for form {form_id} returned no response id") from exc

    # ── Customers ────────────────────────────────────────────────────

    async def authenticate_customer(
        self,
        restaurant_id: str,
        request: CustomerAuthRequest,
        context: ApiContext | None = None,
    ) -> dict[str, Any]:
        data = await self._request(
            "POST",
            "/auth/customer/phone",
            context,
            json={"phone": request.phone, "restaurantId": restaurant_id, "tableId": request.table_id},
            unwrap=False,
        )
        return data if isinstance(data, dict) else {"data": data}


# Module-level singleton
hoshloop_client = HoshloopClient()
