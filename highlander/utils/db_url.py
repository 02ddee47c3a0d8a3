"""Database URL handling shared by the app engine, Alembic and the tests."""

from typing import Any, Dict, Tuple, Union

from sqlalchemy.engine import URL, make_url

# libpq options asyncpg rejects as URL query arguments
_LIBPQ_ONLY_ARGS = ("sslmode", "channel_binding")


def prepare_database_url(raw: Union[str, URL]) -> Tuple[URL, Dict[str, Any]]:
    """Pick the async driver and turn libpq-only options into connect args.

    Bare ``postgres://`` and ``postgresql://`` URLs get asyncpg; explicit
    drivers (``postgresql+asyncpg``, ``sqlite+aiosqlite``) are kept. asyncpg
    takes libpq's ``sslmode`` names directly as its ``ssl`` argument.
    """
    url = make_url(raw)
    if url.drivername in ("postgres", "postgresql"):
        url = url.set(drivername="postgresql+asyncpg")

    connect_args: Dict[str, Any] = {}
    sslmode = url.query.get("sslmode")
    if isinstance(sslmode, tuple):
        sslmode = sslmode[-1]
    if sslmode and url.drivername == "postgresql+asyncpg":
        connect_args["ssl"] = sslmode.lower()

    return url.difference_update_query(_LIBPQ_ONLY_ARGS), connect_args


def describe_database_url(url: Union[str, URL]) -> str:
    """Loggable form of the URL, password masked."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except Exception:
        return "<unparseable database URL>"
