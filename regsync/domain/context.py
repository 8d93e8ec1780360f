"""
Execution context domain objects for regsync.

SystemContext carries the per-registry settings (credentials, TLS policy,
certificate directory, architecture override) that an image transport call
needs. It is frozen: per-registry overrides produce a new context so that
units already dispatched keep the snapshot they were given.
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Tuple


@dataclass(frozen=True)
class SystemContext:
    """Settings for talking to one registry or directory."""
    username: Optional[str] = None
    password: Optional[str] = None
    tls_verify: Optional[bool] = None  # None = transport default
    cert_dir: Optional[str] = None
    override_arch: Optional[str] = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.username)

    @property
    def credentials(self) -> Optional[str]:
        """``user:password`` as accepted by ``--creds``."""
        if not self.username:
            return None
        return f"{self.username}:{self.password or ''}"

    def with_overrides(self, **changes: Any) -> "SystemContext":
        """Return a copy with ``changes`` applied."""
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'username': self.username,
            'password': '***' if self.password else None,
            'tls_verify': self.tls_verify,
            'cert_dir': self.cert_dir,
            'override_arch': self.override_arch,
        }

    def __repr__(self) -> str:
        return (
            f"SystemContext(username={self.username!r}, tls_verify={self.tls_verify!r}, "
            f"cert_dir={self.cert_dir!r}, override_arch={self.override_arch!r})"
        )


def parse_credentials(value: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Split ``USER[:PASSWORD]`` into its parts."""
    if not value:
        return None, None
    username, _, password = value.partition(":")
    return username, password or None


@dataclass(frozen=True)
class CopyOptions:
    """Options shared by every copy of one source repository."""
    source_ctx: SystemContext = field(default_factory=SystemContext)
    destination_ctx: SystemContext = field(default_factory=SystemContext)
    remove_signatures: bool = False
    sign_by: Optional[str] = None
    policy_path: Optional[str] = None
    insecure_policy: bool = False
