import time
from typing import Optional, Any
from collections.abc import Iterator, Mapping, MutableMapping
from .crypto import generate_session_id, seal, unseal


def is_expired(now: float, created: float, ttl: float) -> bool:
    """True when a session created at ``created`` is past ``ttl`` seconds."""
    return now - created > ttl


def remaining_seconds(now: float, created: float, ttl: int) -> int:
    """Whole seconds of lifetime left, never negative."""
    return max(0, int(ttl) - int(now - created))


class SessionData(MutableMapping[str, Any]):
    """Session secret bundle.

    A dict-like object mapping secret names (provider names for the vault
    flavor, ``token`` for bearer-token brokers) to secret values. Values
    are sealed on assignment and only opened on item access, so neither
    ``repr()`` nor ``vars()`` of a session exposes secret material.

    Non-secret facts about the session (the token type, for example) are
    kept apart in ``attributes`` and may be returned to callers.
    """

    def __init__(
        self,
        *,
        data: Optional[Mapping[str, Any]] = None,
        id: Optional[str] = None,
        created: Optional[float] = None,
        attributes: Optional[Mapping[str, Any]] = None,
        new: bool = True
    ) -> None:
        self._id_ = id or generate_session_id()
        self._secrets: dict[str, bytes] = {}
        self._attributes: dict[str, Any] = dict(attributes or {})
        self._created = created if created is not None else time.time()
        self._new = new
        self._changed = False
        if data:
            for key, value in data.items():
                self[key] = value

    def __repr__(self) -> str:
        return (
            f'<Broker-Session [id:{self._id_[:8]}, created:{self._created}] '
            f'secrets={list(self._secrets.keys())}, '
            f'attributes={self._attributes!r}>'
        )

    # --- Properties ---

    @property
    def session_id(self) -> str:
        return self._id_

    @property
    def created(self) -> float:
        return self._created

    @property
    def new(self) -> bool:
        return self._new

    @property
    def empty(self) -> bool:
        return not bool(self._secrets)

    @property
    def attributes(self) -> dict:
        return self._attributes

    @property
    def is_changed(self) -> bool:
        return self._changed

    @is_changed.setter
    def is_changed(self, value: bool) -> None:
        self._changed = value

    def secret_names(self) -> list[str]:
        """Names of the secrets held, in insertion order."""
        return list(self._secrets.keys())

    def is_expired(self, now: float, ttl: float) -> bool:
        return is_expired(now, self._created, ttl)

    def invalidate(self) -> None:
        """Drop every secret held by this session."""
        self._changed = True
        self._secrets = {}

    # --- Magic Methods ---

    def __len__(self) -> int:
        return len(self._secrets)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._secrets))

    def __contains__(self, key: object) -> bool:
        return key in self._secrets

    def __getitem__(self, key: str) -> Any:
        return unseal(self._secrets[key], self._id_)

    def __setitem__(self, key: str, value: Any) -> None:
        self._secrets[key] = seal(value, self._id_)
        self._changed = True

    def __delitem__(self, key: str) -> None:
        del self._secrets[key]
        self._changed = True
