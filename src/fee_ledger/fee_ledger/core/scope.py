from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TenantScope:
    """Org/branch filter supplied by the upstream auth layer.

    Trusted as-is: every repository query filters on it.
    """

    org_id: int
    branch_id: int
    user_id: int = 0
