"""Read contract for per-user service credentials."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Protocol, Tuple


@dataclass(frozen=True)
class Credential:
    verified: bool
    data: Dict[str, str] = field(default_factory=dict)


class CredentialStore(Protocol):
    async def get_credential(self, user_id: str, service: str) -> Optional[Credential]:
        ...


class StaticCredentialStore:
    """In-memory credential store keyed by (user, service)."""

    def __init__(self, credentials: Optional[Mapping[Tuple[str, str], Credential]] = None):
        self._credentials: Dict[Tuple[str, str], Credential] = dict(credentials or {})

    def set_credential(self, user_id: str, service: str, credential: Credential) -> None:
        self._credentials[(user_id, service)] = credential

    async def get_credential(self, user_id: str, service: str) -> Optional[Credential]:
        return self._credentials.get((user_id, service))
