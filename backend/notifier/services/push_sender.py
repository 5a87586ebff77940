"""Push transports - Expo push service and APNs.

Every transport sends one message to many tokens and returns one
``SendResult`` per token, in the same order as the tokens it was given.
Token cleanup relies on that positional correspondence.
"""
import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import httpx
from aioapns import APNs, NotificationRequest, PushType

from .payload import NotificationMessage

logger = logging.getLogger(__name__)

EXPO_TOKEN_PATTERN = re.compile(r"^Expo(nent)?PushToken\[[^\]]+\]$")
APNS_TOKEN_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")
GENERIC_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_:\-]+$")

MIN_TOKEN_LENGTH = 20

# Expo accepts at most 100 messages per request
EXPO_CHUNK_SIZE = 100

# Expo ticket errors meaning the token will never work again
EXPO_INVALID_TOKEN_ERRORS = {"DeviceNotRegistered"}

# APNs reasons meaning the token will never work again
APNS_INVALID_TOKEN_REASONS = {"BadDeviceToken", "Unregistered", "DeviceTokenNotForTopic"}


def is_expo_push_token(token: str) -> bool:
    return isinstance(token, str) and bool(EXPO_TOKEN_PATTERN.match(token))


def classify_token(token: str) -> str:
    """Return the token type: expo, apns or fcm."""
    if is_expo_push_token(token):
        return "expo"
    if APNS_TOKEN_PATTERN.match(token):
        return "apns"
    return "fcm"


def is_valid_push_token(token: Optional[str]) -> bool:
    """Permissive format check accepting tokens from several providers."""
    if not isinstance(token, str) or len(token) <= MIN_TOKEN_LENGTH:
        return False
    return is_expo_push_token(token) or bool(GENERIC_TOKEN_PATTERN.match(token))


def _short(token: str) -> str:
    return f"{token[:20]}..."


@dataclass
class SendResult:
    """Outcome of sending to one token."""
    token: str
    ok: bool
    error: Optional[str] = None
    invalid: bool = False  # transport says the token is permanently unusable


class PushTransport:
    """Base class for multicast-capable push transports."""

    name = "base"

    async def send_multicast(
        self,
        tokens: Sequence[str],
        message: NotificationMessage,
    ) -> List[SendResult]:
        raise NotImplementedError

    def supports(self, token: str) -> bool:
        """Whether this transport can deliver to the token at all."""
        return True

    async def close(self):
        pass


class ExpoPushTransport(PushTransport):
    """Sends notifications through the Expo push API."""

    name = "expo"

    def __init__(
        self,
        push_url: str,
        access_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        chunk_size: int = EXPO_CHUNK_SIZE,
        timeout: float = 30.0,
    ):
        self.push_url = push_url
        self.access_token = access_token
        self.chunk_size = chunk_size
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    @staticmethod
    def build_message(token: str, message: NotificationMessage) -> dict:
        return {
            "to": token,
            "sound": "default",
            "title": message.title,
            "body": message.body,
            "data": message.data,
            "priority": "high",
            "channelId": "default",
        }

    async def _send_chunk(self, chunk: Sequence[str], message: NotificationMessage) -> List[SendResult]:
        payload = [self.build_message(token, message) for token in chunk]

        try:
            response = await self._get_client().post(
                self.push_url, json=payload, headers=self._headers()
            )
        except httpx.TimeoutException:
            logger.error(f"Expo push request timed out ({len(chunk)} tokens)")
            return [SendResult(token=t, ok=False, error="timeout") for t in chunk]
        except httpx.HTTPError as e:
            logger.error(f"Expo push request failed: {e}")
            return [SendResult(token=t, ok=False, error=str(e)) for t in chunk]

        if response.status_code != 200:
            error = f"Expo API returned {response.status_code}"
            logger.error(f"{error}: {response.text[:200]}")
            return [SendResult(token=t, ok=False, error=error) for t in chunk]

        try:
            body = response.json()
        except ValueError:
            logger.error(f"Expo returned a non-JSON response: {response.text[:200]}")
            return [SendResult(token=t, ok=False, error="invalid response") for t in chunk]

        tickets = body.get("data") if isinstance(body, dict) else None
        if isinstance(tickets, dict):
            tickets = [tickets]
        if not isinstance(tickets, list) or len(tickets) != len(chunk):
            logger.error(
                f"Expo returned {len(tickets) if isinstance(tickets, list) else 'no'} "
                f"tickets for {len(chunk)} messages"
            )
            return [SendResult(token=t, ok=False, error="ticket mismatch") for t in chunk]

        results = []
        for token, ticket in zip(chunk, tickets):
            if not isinstance(ticket, dict):
                logger.warning(f"Malformed Expo ticket for {_short(token)}: {ticket!r}")
                results.append(SendResult(token=token, ok=False, error="malformed ticket"))
                continue
            if ticket.get("status") == "ok":
                results.append(SendResult(token=token, ok=True))
                continue

            details = ticket.get("details")
            if not isinstance(details, dict):
                details = {}
            error = details.get("error") or ticket.get("message") or "unknown error"
            invalid = error in EXPO_INVALID_TOKEN_ERRORS
            if invalid:
                logger.warning(f"Expo reports token not registered: {_short(token)}")
            else:
                logger.warning(f"Expo ticket error for {_short(token)}: {error}")
            results.append(SendResult(token=token, ok=False, error=error, invalid=invalid))

        return results

    async def send_multicast(
        self,
        tokens: Sequence[str],
        message: NotificationMessage,
    ) -> List[SendResult]:
        results: List[SendResult] = []
        for i in range(0, len(tokens), self.chunk_size):
            chunk = tokens[i:i + self.chunk_size]
            results.extend(await self._send_chunk(chunk, message))
        return results

    async def close(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class ApnsPushTransport(PushTransport):
    """Sends notifications straight to APNs for raw iOS device tokens."""

    name = "apns"

    def __init__(
        self,
        key_path: str,
        key_id: str,
        team_id: str,
        bundle_id: str,
        use_sandbox: bool = True,
        client: Optional[APNs] = None,
    ):
        self._client = client or APNs(
            key=key_path,
            key_id=key_id,
            team_id=team_id,
            topic=bundle_id,
            use_sandbox=use_sandbox,
        )
        logger.info(f"APNs client configured (sandbox={use_sandbox})")

    async def _send_one(self, token: str, message: NotificationMessage) -> SendResult:
        payload = {
            "aps": {
                "alert": {"title": message.title, "body": message.body},
                "sound": "default",
            }
        }
        payload.update(message.data)

        request = NotificationRequest(
            device_token=token,
            message=payload,
            push_type=PushType.ALERT,
        )

        try:
            response = await self._client.send_notification(request)
        except Exception as e:
            logger.error(f"Failed to send APNs notification to {_short(token)}: {e}")
            return SendResult(token=token, ok=False, error=str(e))

        if response.is_successful:
            return SendResult(token=token, ok=True)

        reason = response.description or str(response.status)
        logger.warning(f"APNs notification failed: {reason} (token: {_short(token)})")
        return SendResult(
            token=token,
            ok=False,
            error=reason,
            invalid=reason in APNS_INVALID_TOKEN_REASONS,
        )

    async def send_multicast(
        self,
        tokens: Sequence[str],
        message: NotificationMessage,
    ) -> List[SendResult]:
        # gather keeps results in input order
        return list(await asyncio.gather(*[self._send_one(t, message) for t in tokens]))


class RoutingPushTransport(PushTransport):
    """Routes each token to the transport for its token type."""

    name = "routing"

    def __init__(self, transports: Dict[str, PushTransport]):
        self.transports = transports

    def supports(self, token: str) -> bool:
        return classify_token(token) in self.transports

    async def send_multicast(
        self,
        tokens: Sequence[str],
        message: NotificationMessage,
    ) -> List[SendResult]:
        results: List[Optional[SendResult]] = [None] * len(tokens)

        by_type: Dict[str, List[int]] = {}
        for index, token in enumerate(tokens):
            by_type.setdefault(classify_token(token), []).append(index)

        for token_type, indexes in by_type.items():
            transport = self.transports.get(token_type)
            if transport is None:
                logger.warning(f"No transport configured for {len(indexes)} {token_type} tokens")
                for index in indexes:
                    results[index] = SendResult(
                        token=tokens[index], ok=False, error="unsupported token type"
                    )
                continue

            group = [tokens[index] for index in indexes]
            for index, result in zip(indexes, await transport.send_multicast(group, message)):
                results[index] = result

        return results

    async def close(self):
        for transport in self.transports.values():
            await transport.close()
