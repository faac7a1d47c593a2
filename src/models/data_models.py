"""Core data models for the similar products service."""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

V = TypeVar("V")


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class LookupStatus(Enum):
    """Normalized outcome of a single upstream lookup."""
    SUCCESS = "success"
    ABSENT = "absent"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ProductDetail:
    """Product detail as served by the detail upstream."""
    id: str
    name: str
    price: Optional[Decimal]
    availability: bool

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ProductDetail":
        """
        Build a detail from an upstream JSON body.

        Raises:
            ValueError: If a required field is missing or has the wrong type
        """
        if not isinstance(payload, dict):
            raise ValueError(f"Expected JSON object, got {type(payload).__name__}")

        product_id = payload.get("id")
        if product_id is None or str(product_id) == "":
            raise ValueError("Product detail is missing 'id'")

        name = payload.get("name")
        if not isinstance(name, str):
            raise ValueError(f"Product detail {product_id} has invalid 'name'")

        availability = payload.get("availability")
        if not isinstance(availability, bool):
            raise ValueError(f"Product detail {product_id} has invalid 'availability'")

        return cls(
            id=str(product_id),
            name=name,
            price=_parse_price(payload.get("price")),
            availability=availability,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON shape used by the upstream and the API."""
        return {
            "id": self.id,
            "name": self.name,
            "price": float(self.price) if self.price is not None else None,
            "availability": self.availability,
        }


def _parse_price(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    # bool is an int subclass and never a price
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"Invalid price: {value!r}")
    try:
        price = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid price: {value!r}") from e
    if not price.is_finite() or price < 0:
        raise ValueError(f"Invalid price: {value!r}")
    return price


def parse_candidate_ids(payload: Any) -> List[str]:
    """
    Parse the similar-ids upstream body.

    Order is preserved and duplicates are passed through.

    Raises:
        ValueError: If the body is not a JSON array of scalar ids
    """
    if not isinstance(payload, list):
        raise ValueError(f"Expected JSON array of ids, got {type(payload).__name__}")

    ids = []
    for item in payload:
        if isinstance(item, bool) or not isinstance(item, (str, int)):
            raise ValueError(f"Invalid candidate id: {item!r}")
        ids.append(str(item))
    return ids


@dataclass
class LookupOutcome(Generic[V]):
    """
    Result of one gateway call.

    For UNAVAILABLE outcomes ``value`` carries the dependency fallback
    (empty list for id lookups, None for detail lookups).
    """
    status: LookupStatus
    value: Optional[V] = None
    fault: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status is LookupStatus.SUCCESS

    @classmethod
    def success(cls, value: V) -> "LookupOutcome[V]":
        return cls(status=LookupStatus.SUCCESS, value=value)

    @classmethod
    def absent(cls) -> "LookupOutcome[V]":
        return cls(status=LookupStatus.ABSENT, fault="not_found")

    @classmethod
    def unavailable(cls, fault: str, fallback: Optional[V] = None) -> "LookupOutcome[V]":
        return cls(status=LookupStatus.UNAVAILABLE, value=fallback, fault=fault)


@dataclass
class HalfOpenToken:
    """Token for tracking half-open circuit breaker trial calls."""
    dependency: str
    timestamp: float
    episode: int = 0


@dataclass
class FallbackEvent:
    """Emitted when a gateway answers with its fallback instead of upstream data."""
    dependency: str
    product_id: str
    reason: str  # "circuit_open" | "retries_exhausted"
    fault: Optional[str] = None
