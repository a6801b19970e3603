"""OneSignal REST API client used as the push-delivery gateway."""

from __future__ import annotations

from typing import Any

import requests  # type: ignore[import-untyped]
from requests import Session

from ..errors import DeliveryFailed
from .config import DEFAULT_ONESIGNAL_API_URL, Settings


class OneSignalClient:
    """Minimal client for broadcasting notifications through OneSignal."""

    def __init__(
        self,
        app_id: str | None,
        api_key: str | None,
        *,
        base_url: str = DEFAULT_ONESIGNAL_API_URL,
        timeout: int = 10,
    ) -> None:
        self.app_id = app_id
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: Session | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> OneSignalClient:
        return cls(
            settings.onesignal_app_id,
            settings.onesignal_api_key,
            base_url=settings.onesignal_api_url,
            timeout=settings.gateway_timeout,
        )

    @property
    def configured(self) -> bool:
        return bool(self.app_id and self.api_key)

    def establish_connection(self) -> Session:
        """Initialize (or reuse) a requests.Session carrying the REST credential."""
        if self._session is not None:
            return self._session

        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Basic {self.api_key}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )

        self._session = session
        return session

    def send(
        self,
        recipients: list[str],
        *,
        title: str,
        body: str,
        url: str | None = None,
    ) -> dict[str, Any]:
        """Broadcast one notification to every recipient and return the response body."""
        if not self.configured:
            raise DeliveryFailed("OneSignal app id and REST API key are required.")
        if not recipients:
            raise DeliveryFailed("At least one recipient id is required.")

        payload: dict[str, Any] = {
            "app_id": self.app_id,
            "include_player_ids": list(recipients),
            "headings": {"en": title},
            "contents": {"en": body},
        }
        if url:
            payload["url"] = url

        session = self.establish_connection()
        try:
            response = session.request(
                method="POST",
                url=f"{self.base_url}/notifications",
                json=payload,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise DeliveryFailed(
                f"OneSignal request timed out after {self.timeout}s"
            ) from exc
        except requests.RequestException as exc:
            raise DeliveryFailed(f"OneSignal request failed: {exc}") from exc

        if not response.ok:
            raise DeliveryFailed(
                f"OneSignal request failed ({response.status_code}): {response.text}"
            )

        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}

    def close(self) -> None:
        """Close the underlying session if it was created."""
        if self._session is not None:
            self._session.close()
            self._session = None
