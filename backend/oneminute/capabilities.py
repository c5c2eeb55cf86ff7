"""Platform capability providers selected once at startup."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .config import Settings


class CapabilityProvider(Protocol):
    name: str

    @property
    def remote_content(self) -> bool:  # pragma: no cover - protocol definition
        ...

    @property
    def local_notifications(self) -> bool:  # pragma: no cover - protocol definition
        ...


@dataclass(frozen=True)
class NativeCapabilities:
    """Device builds: remote catalog and scheduled reminders are available."""

    name: str = "native"

    @property
    def remote_content(self) -> bool:
        return True

    @property
    def local_notifications(self) -> bool:
        return True


@dataclass(frozen=True)
class WebCapabilities:
    """Browser builds: bundled catalog only, no local reminders."""

    name: str = "web"

    @property
    def remote_content(self) -> bool:
        return False

    @property
    def local_notifications(self) -> bool:
        return False


def select_capabilities(settings: Settings) -> CapabilityProvider:
    if settings.platform == "web":
        return WebCapabilities()
    return NativeCapabilities()


__all__ = [
    "CapabilityProvider",
    "NativeCapabilities",
    "WebCapabilities",
    "select_capabilities",
]
