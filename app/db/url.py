from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

ASYNC_DRIVER_SCHEME = "postgresql+asyncpg"


def normalize_database_url(url: str) -> str:
    """Coerce plain Postgres URLs to the asyncpg driver and its ssl query syntax."""
    url = (url or "").strip()
    if not url:
        return url

    parts = urlsplit(url)
    scheme = parts.scheme
    if scheme in {"postgres", "postgresql", "postgresql+psycopg", "postgresql+psycopg2"}:
        scheme = ASYNC_DRIVER_SCHEME

    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    if scheme == ASYNC_DRIVER_SCHEME:
        # asyncpg understands ssl=<mode>, not libpq's sslmode
        sslmode = query.pop("sslmode", None)
        if sslmode is not None and "ssl" not in query:
            query["ssl"] = "disable" if sslmode.lower() == "disable" else sslmode.lower()
        ssl_val = query.get("ssl")
        if ssl_val is not None and ssl_val.lower() in {"1", "true", "yes", "on"}:
            query["ssl"] = "require"

    new_query = urlencode(query, doseq=True)
    return urlunsplit((scheme, parts.netloc, parts.path, new_query, parts.fragment))
