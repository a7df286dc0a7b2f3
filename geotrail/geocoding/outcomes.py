"""
Typed outcomes passed between the resolver's internal steps.

Providers and queues raise; the resolver turns each attempt into a
``ProviderOutcome`` so a whole resolution can be inspected afterwards through
``Resolution.diagnostics`` instead of only through the logs.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from geotrail.models.geocode import GeocodeResult

NOT_FOUND = "not_found"
TRANSIENT = "transient"


@dataclass(frozen=True)
class Diagnostic:
    provider: str
    reason: str
    detail: str = ""


@dataclass(frozen=True)
class ProviderOutcome:
    result: Optional[GeocodeResult] = None
    diagnostic: Optional[Diagnostic] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


@dataclass
class Resolution:
    result: GeocodeResult
    diagnostics: List[Diagnostic] = field(default_factory=list)
    from_cache: bool = False

