from starlette.types import ASGIApp, Receive, Scope, Send, Message


class SecurityHeadersMiddleware:
    """Apply a set of safe default security headers for HTTP responses."""

    def __init__(self, app: ASGIApp, enable_hsts: bool = True) -> None:
        self.app = app
        self.enable_hsts = enable_hsts

    def _defaults(self, path: str) -> list[tuple[bytes, bytes]]:
        defaults: list[tuple[bytes, bytes]] = [
            (b"x-content-type-options", b"nosniff"),
            (b"x-frame-options", b"DENY"),
            (b"referrer-policy", b"no-referrer"),
            (b"x-xss-protection", b"0"),
            (b"cross-origin-opener-policy", b"same-origin"),
        ]
        # Signed file and report downloads must never be cached by shared proxies
        if path.startswith("/api/v1/files") or path.startswith("/api/v1/reports"):
            defaults.append((b"cache-control", b"no-store"))
        if self.enable_hsts:
            defaults.append((
                b"strict-transport-security",
                b"max-age=63072000; includeSubDomains",
            ))
        return defaults

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        defaults = self._defaults(scope.get("path", ""))

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                existing_keys = {k.lower() for k, _ in message.get("headers", [])}
                new_headers = list(message.get("headers", []))
                for key, value in defaults:
                    if key not in existing_keys:
                        new_headers.append((key, value))
                message["headers"] = new_headers
            await send(message)

        await self.app(scope, receive, send_with_headers)
