from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

from .models import HealthStatus
from .router import ProviderRouter


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def health(
    router: Optional[ProviderRouter] = None,
    now: Callable[[], datetime] = _utc_now,
) -> HealthStatus:
    """
    Report which provider credentials are configured.

    This only inspects configuration. It never contacts a provider, so
    ``status`` is always "healthy".
    """
    router = router if router is not None else ProviderRouter()
    timestamp = now().astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return HealthStatus(
        timestamp=timestamp.replace("+00:00", "Z"),
        apis=router.configured_providers(),
    )
