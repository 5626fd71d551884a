"""Rate limit schema and the registration-time probe.

The probe seeds each installation's quota state; afterwards state is
tracked passively from response headers by the routing transport.
"""

from .probe import RateLimitProbe, probe_rate_limit, rate_limit_probe
from .schemas import CoreRateLimit

__all__ = [
    "CoreRateLimit",
    "RateLimitProbe",
    "probe_rate_limit",
    "rate_limit_probe",
]
