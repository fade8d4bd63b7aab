import asyncio
import base64
import json
import time
from typing import Any, Dict, Optional

import httpx
from google.auth.transport.requests import Request
from google.oauth2 import service_account

FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"


class FcmTransport:
    """
    Topic messages over FCM HTTP v1. `send()` returns the provider message
    name (projects/<pid>/messages/<id>) and raises on any failure.
    """

    def __init__(
        self,
        sa_b64: str = "",
        project_id: str = "",
        timeout: float = 20.0,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.sa_b64 = sa_b64
        self.project_id = project_id.strip()
        self.timeout = timeout
        self.http_transport = http_transport
        self._access_token_cache: Dict[str, Any] = {
            "token": None,
            "exp": 0,
        }

    def _load_sa_info(self) -> Dict[str, Any]:
        if not self.sa_b64:
            raise RuntimeError("Missing FIREBASE_SA_B64")
        raw = base64.b64decode(self.sa_b64).decode("utf-8")
        return json.loads(raw)

    def _get_project_id(self) -> str:
        pid = self.project_id
        if not pid:
            # fallback: try from SA
            info = self._load_sa_info()
            pid = (info.get("project_id") or "").strip()
        if not pid:
            raise RuntimeError("Missing FIREBASE_PROJECT_ID")
        return pid

    async def _get_access_token(self) -> str:
        now = int(time.time())
        cache = self._access_token_cache
        if cache["token"] and cache["exp"] - 60 > now:
            return cache["token"]

        info = self._load_sa_info()
        creds = service_account.Credentials.from_service_account_info(
            info,
            scopes=[FCM_SCOPE],
        )

        # refresh is sync; run it in thread to avoid blocking event loop
        def _refresh():
            creds.refresh(Request())
            return creds.token, int(creds.expiry.timestamp()) if creds.expiry else now + 300

        token, exp = await asyncio.to_thread(_refresh)

        cache["token"] = token
        cache["exp"] = exp
        return token

    @staticmethod
    def build_payload(
        title: str,
        body: str,
        topic: str,
        image: Optional[str] = None,
    ) -> Dict[str, Any]:
        notification = {"title": title, "body": body}
        if image:
            notification["image"] = image
        return {
            "message": {
                "topic": topic,
                "notification": notification,
                "android": {
                    "priority": "HIGH",
                },
            }
        }

    async def send(
        self,
        title: str,
        body: str,
        topic: str,
        image: Optional[str] = None,
    ) -> str:
        access_token = await self._get_access_token()
        project_id = self._get_project_id()

        url = f"https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
        payload = self.build_payload(title, body, topic, image)
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.http_transport) as client:
            resp = await client.post(url, headers=headers, json=payload)
            if resp.status_code >= 400:
                raise RuntimeError(f"FCM error {resp.status_code}: {resp.text[:400]}")
            return str(resp.json().get("name") or "")
