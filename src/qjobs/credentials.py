from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from qjobs.config import Settings

DEFAULT_REGION = "us-east"


@dataclass(frozen=True)
class Credentials:
    api_key: str = ""
    instance_crn: str = ""
    region: str = DEFAULT_REGION

    @property
    def is_complete(self) -> bool:
        return bool(self.api_key.strip()) and bool(self.instance_crn.strip())


class CredentialStore(Protocol):
    def get(self) -> Credentials: ...

    def set(self, credentials: Credentials) -> None: ...

    def clear(self) -> None: ...


class InMemoryCredentialStore:
    """Keeps credentials for the lifetime of the process and nothing longer."""

    def __init__(self, initial: Credentials | None = None) -> None:
        self._credentials = initial or Credentials()

    def get(self) -> Credentials:
        return self._credentials

    def set(self, credentials: Credentials) -> None:
        self._credentials = Credentials(
            api_key=credentials.api_key.strip(),
            instance_crn=credentials.instance_crn.strip(),
            region=credentials.region.strip() or DEFAULT_REGION,
        )

    def clear(self) -> None:
        self._credentials = Credentials()


def credentials_from_settings(settings: Settings) -> Credentials:
    return Credentials(
        api_key=settings.api_key.strip(),
        instance_crn=settings.instance_crn.strip(),
        region=settings.region.strip() or DEFAULT_REGION,
    )
