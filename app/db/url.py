from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


def normalize_database_url(url: str) -> str:
    """Coerce a DATABASE_URL into the asyncpg dialect SQLAlchemy expects.

    Hosted Postgres providers hand out ``postgres://`` URLs with libpq-style
    ``sslmode`` query args; asyncpg only understands ``ssl``.
    """
    url = (url or "").strip()
    if not url:
        return url

    parts = urlsplit(url)
    scheme = parts.scheme
    if scheme in {"postgres", "postgresql", "postgresql+psycopg", "postgresql+psycopg2"}:
        scheme = "postgresql+asyncpg"

    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    sslmode = query.pop("sslmode", None)
    if sslmode is not None and "ssl" not in query:
        normalized = sslmode.lower().strip()
        query["ssl"] = "disable" if normalized in {"disable", "allow"} else normalized

    new_query = urlencode(query, doseq=True)
    return urlunsplit((scheme, parts.netloc, parts.path, new_query, parts.fragment))
