# watch_core.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Literal, Optional, Protocol, Sequence, Union

import requests
import yaml

logger = logging.getLogger(__name__)

ItemId = Union[int, str]
FilterOp = Literal["eq", "ilike"]
Filter = tuple[str, FilterOp, Any]
Status = Literal["ok", "exists", "empty", "not_found", "invalid", "error"]

CONFIG_FILENAME = "watchlist.yml"
DEFAULT_TABLE = "watchlist"
DEFAULT_TIMEOUT = 15.0
TITLE_MAX_LEN = 250
ITEM_COLUMNS = ["id", "title", "watched", "created_at"]
_int_re = re.compile(r"^[+-]?\d+$")


# -------------------------
# Errors
# -------------------------
class WatchError(Exception):
    pass


class ConfigError(WatchError):
    pass


class ValidationError(WatchError):
    pass


class RemoteError(WatchError):
    pass


# -------------------------
# Data shapes
# -------------------------
@dataclass(frozen=True)
class WatchItem:
    id: ItemId
    title: str
    watched: bool = False
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "WatchItem":
        return cls(
            id=row["id"],
            title=str(row.get("title") or ""),
            watched=bool(row.get("watched")),
            created_at=row.get("created_at"),
        )


@dataclass(frozen=True)
class CommandResult:
    status: Status
    item: Optional[WatchItem] = None
    items: list[WatchItem] = field(default_factory=list)
    message: Optional[str] = None


@dataclass(frozen=True)
class WatchConfig:
    url: str
    key: str
    table: str = DEFAULT_TABLE
    timeout: float = DEFAULT_TIMEOUT


# -------------------------
# Utilities
# -------------------------
def clean_title(title: str) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title cannot be empty")
    if len(title) > TITLE_MAX_LEN:
        raise ValidationError("Title is too long")
    return title


def parse_item_id(raw: str) -> int:
    raw = (raw or "").strip()
    if not _int_re.match(raw):
        raise ValidationError("Invalid ID. Please enter a valid number.")
    return int(raw)


def default_config_path() -> Path:
    return Path.home() / CONFIG_FILENAME


def load_config(path: Optional[Path | str] = None) -> WatchConfig:
    """Read the Supabase credentials from the YAML config file.

    Any problem with the file is reported as a ConfigError naming the path,
    so the caller can stop before running a command.
    """
    path = Path(path) if path else default_config_path()
    if not path.is_file():
        raise ConfigError(f"Config file not found. Please create: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain SUPABASE_URL and SUPABASE_KEY")

    url = str(data.get("SUPABASE_URL") or "").strip()
    key = str(data.get("SUPABASE_KEY") or "").strip()
    if not url or not key:
        raise ConfigError(f"Missing Supabase credentials in {path}")

    table = str(data.get("SUPABASE_TABLE") or DEFAULT_TABLE).strip()
    try:
        timeout = float(data["TIMEOUT"]) if "TIMEOUT" in data else DEFAULT_TIMEOUT
    except (TypeError, ValueError) as e:
        raise ConfigError(f"TIMEOUT in {path} must be a number") from e
    if not timeout > 0:
        raise ConfigError(f"TIMEOUT in {path} must be a positive number")

    return WatchConfig(url=url.rstrip("/"), key=key, table=table, timeout=timeout)


# -------------------------
# Remote store
# -------------------------
class WatchStore(Protocol):
    def select(
        self,
        columns: Sequence[str],
        filters: Iterable[Filter] = (),
        order: Optional[tuple[str, bool]] = None,
        limit: Optional[int] = None,
    ) -> list[dict]: ...

    def maybe_single(self, columns: Sequence[str], filters: Iterable[Filter]) -> Optional[dict]: ...

    def insert(self, row: dict) -> dict: ...

    def update(self, values: dict, filters: Iterable[Filter]) -> None: ...

    def delete(self, filters: Iterable[Filter]) -> None: ...


class SupabaseStore:
    """PostgREST client for one table of a Supabase project.

    Filters are ``(column, op, value)`` triples and are sent as
    ``column=op.value`` query parameters. Every failure, whether transport
    or HTTP status, is raised as RemoteError.
    """

    def __init__(self, config: WatchConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{self.config.url}/rest/v1/{self.config.table}"

    def _headers(self, prefer: Optional[str] = None) -> dict:
        headers = {
            "apikey": self.config.key,
            "Authorization": f"Bearer {self.config.key}",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    @staticmethod
    def _filter_params(filters: Iterable[Filter]) -> list[tuple[str, str]]:
        params = []
        for column, op, value in filters:
            if isinstance(value, bool):
                value = "true" if value else "false"
            params.append((column, f"{op}.{value}"))
        return params

    def _request(
        self,
        method: str,
        params: list[tuple[str, str]],
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        logger.debug("%s %s params=%s", method, self.config.table, params)
        try:
            r = self.session.request(
                method,
                self.endpoint,
                headers=self._headers(prefer),
                params=params,
                json=json,
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            raise RemoteError(f"Request to {self.config.url} failed: {e}") from e

        if not r.ok:
            raise RemoteError(self._error_message(r))

        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise RemoteError(f"Invalid response from {self.config.url}: {e}") from e

    @staticmethod
    def _error_message(r: requests.Response) -> str:
        try:
            body = r.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return f"{r.status_code} {r.reason}".strip()

    def select(
        self,
        columns: Sequence[str],
        filters: Iterable[Filter] = (),
        order: Optional[tuple[str, bool]] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        params = [("select", ",".join(columns))] + self._filter_params(filters)
        if order:
            column, descending = order
            params.append(("order", f"{column}.{'desc' if descending else 'asc'}"))
        if limit is not None:
            params.append(("limit", str(limit)))
        return self._request("GET", params) or []

    def maybe_single(self, columns: Sequence[str], filters: Iterable[Filter]) -> Optional[dict]:
        rows = self.select(columns, filters)
        if len(rows) > 1:
            raise RemoteError(f"Expected at most one row, got {len(rows)}")
        return rows[0] if rows else None

    def insert(self, row: dict) -> dict:
        data = self._request("POST", [], json=[row], prefer="return=representation")
        if not data:
            raise RemoteError("Insert returned no row")
        return data[0]

    def update(self, values: dict, filters: Iterable[Filter]) -> None:
        self._request("PATCH", self._filter_params(filters), json=values, prefer="return=minimal")

    def delete(self, filters: Iterable[Filter]) -> None:
        self._request("DELETE", self._filter_params(filters), prefer="return=minimal")


# -------------------------
# High-level service for the CLI
# -------------------------
class WatchService:
    def __init__(self, store: WatchStore):
        self.store = store

    def add(self, title: str) -> CommandResult:
        try:
            title = clean_title(title)
            existing = self.store.maybe_single(["id"], [("title", "eq", title)])
            if existing:
                return CommandResult(status="exists", message="Already in your watchlist!")
            row = self.store.insert({"title": title, "watched": False})
        except ValidationError as e:
            return CommandResult(status="invalid", message=str(e))
        except RemoteError as e:
            return self._remote_failure("add", e)

        return CommandResult(status="ok", item=WatchItem.from_row({"title": title, **row}))

    def list_items(self) -> CommandResult:
        try:
            rows = self.store.select(ITEM_COLUMNS, order=("created_at", True))
        except RemoteError as e:
            return self._remote_failure("list", e)

        if not rows:
            return CommandResult(status="empty")
        return CommandResult(status="ok", items=[WatchItem.from_row(r) for r in rows])

    def toggle(self, item_id: ItemId) -> CommandResult:
        # Read then write, not atomic: a concurrent toggle wins last.
        try:
            row = self.store.maybe_single(["id", "title", "watched"], [("id", "eq", item_id)])
            if not row:
                return CommandResult(status="not_found")
            watched = not bool(row.get("watched"))
            self.store.update({"watched": watched}, [("id", "eq", item_id)])
        except RemoteError as e:
            return self._remote_failure("toggle", e)

        return CommandResult(status="ok", item=WatchItem.from_row({**row, "watched": watched}))

    def remove(self, item_id: str) -> CommandResult:
        try:
            tid = parse_item_id(str(item_id))
            row = self.store.maybe_single(["id", "title"], [("id", "eq", tid)])
            if not row:
                return CommandResult(status="not_found")
            self.store.delete([("id", "eq", tid)])
        except ValidationError as e:
            return CommandResult(status="invalid", message=str(e))
        except RemoteError as e:
            return self._remote_failure("remove", e)

        return CommandResult(status="ok", item=WatchItem.from_row(row))

    def search(self, query: str, limit: Optional[int] = None) -> CommandResult:
        try:
            if limit is not None and limit < 1:
                raise ValidationError("Limit must be a positive number")
            rows = self.store.select(
                ["id", "title", "watched"],
                [("title", "ilike", f"%{query}%")],
                limit=limit,
            )
        except ValidationError as e:
            return CommandResult(status="invalid", message=str(e))
        except RemoteError as e:
            return self._remote_failure("search", e)

        if not rows:
            return CommandResult(status="empty")
        return CommandResult(status="ok", items=[WatchItem.from_row(r) for r in rows])

    def _remote_failure(self, command: str, e: RemoteError) -> CommandResult:
        logger.warning("%s failed: %s", command, e)
        return CommandResult(status="error", message=str(e))


def service_from_config(config: WatchConfig) -> WatchService:
    return WatchService(SupabaseStore(config))
