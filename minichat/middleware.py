import logging

from jose import JWTError

from minichat import database
from minichat.auth import decode_access_token
from minichat.repositories.request_log_repository import RequestLogRepository

logger = logging.getLogger(__name__)


def _username_from_headers(headers) -> str:
    for name, value in headers:
        if name.lower() == b"authorization":
            scheme, _, token = value.decode("latin-1").partition(" ")
            if scheme.lower() != "bearer" or not token:
                return ""
            try:
                return decode_access_token(token).get("name") or ""
            except JWTError:
                return ""
    return ""


def body_for_log(body: bytes) -> str:
    """Raw body as text storable in any database; NUL characters are escaped."""
    return body.decode("utf-8", errors="replace").replace("\x00", "\\x00")


class RequestLoggingMiddleware:
    """Records every HTTP request (client IP, user, raw body) before passing it on."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        chunks = []
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] != "http.request":
                break
            chunks.append(message.get("body", b""))
            more_body = message.get("more_body", False)
        body = b"".join(chunks)

        client = scope.get("client")
        await self._record(
            ip_address=client[0] if client else None,
            username=_username_from_headers(scope.get("headers", [])),
            body=body_for_log(body)
        )

        replayed = False

        async def replay_receive():
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        await self.app(scope, replay_receive, send)

    async def _record(self, ip_address, username: str, body: str):
        try:
            async with database.AsyncSessionLocal() as session:
                await RequestLogRepository(session).add(ip_address, username, body)
        except Exception:
            logger.exception("Could not write request log entry")
