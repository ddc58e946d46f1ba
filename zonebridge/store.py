"""Zone state store: the in-memory mirror of device state."""

import threading
import time
from typing import Any, Callable, Dict, List, Optional

from .const import ATTRIBUTES
from .exceptions import OutOfRangeTargetError
from .models import ZoneState


class ZoneStateStore:
    """Fixed-capacity table of :class:`ZoneState` records.

    The table is allocated once, sized to the protocol maximum. Only the
    configured subset ``[first_index, first_index + configured_count)`` is
    addressable; everything else is never written.

    Each ``set`` writes one attribute and touches the zone's timestamp under
    a single lock, so concurrent decoders cannot interleave half-written
    records.
    """

    def __init__(
        self,
        capacity: int,
        configured_count: Optional[int] = None,
        first_index: int = 0,
        names: Optional[Dict[int, str]] = None,
        default_name: str = "Zone {}",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize store.

        Args:
            capacity: Maximum number of zones the protocol can address
            configured_count: Number of zones actually in use (default: capacity)
            first_index: Index of the first zone (0 for C-Bus, 1 for MRC88)
            names: Optional display names keyed by zone index
            default_name: Format string for zones without a configured name
            clock: Monotonic time source
        """
        if configured_count is None:
            configured_count = capacity
        if not 1 <= configured_count <= capacity:
            raise ValueError(
                f"Configured zone count must be 1-{capacity}, got {configured_count}"
            )

        self.capacity = capacity
        self.configured_count = configured_count
        self.first_index = first_index
        self._clock = clock
        self._lock = threading.RLock()
        self._zones: List[ZoneState] = [
            ZoneState(zone_id=first_index + i, name=default_name.format(first_index + i))
            for i in range(capacity)
        ]

        for zone, name in (names or {}).items():
            self.set_name(zone, name)

    @property
    def last_index(self) -> int:
        """Highest configured zone index."""
        return self.first_index + self.configured_count - 1

    def zone_ids(self) -> range:
        """Configured zone indices."""
        return range(self.first_index, self.first_index + self.configured_count)

    def in_range(self, zone: int) -> bool:
        """Check if a zone index is within the configured range."""
        return self.first_index <= zone <= self.last_index

    def validate(self, zone: int) -> None:
        """Raise OutOfRangeTargetError for zones outside the configured range."""
        if not self.in_range(zone):
            raise OutOfRangeTargetError(
                f"Zone must be {self.first_index}-{self.last_index}, got {zone}"
            )

    def _slot(self, zone: int) -> ZoneState:
        self.validate(zone)
        return self._zones[zone - self.first_index]

    # ========================================================================
    # NAMES (configuration only)
    # ========================================================================

    def set_name(self, zone: int, name: str) -> None:
        """Set the display name of a zone."""
        index = zone - self.first_index
        if not 0 <= index < self.capacity:
            raise OutOfRangeTargetError(f"No zone {zone} to name")
        self._zones[index].name = name

    @property
    def names(self) -> Dict[int, str]:
        """Display names of configured zones."""
        return {zone: self._slot(zone).name for zone in self.zone_ids()}

    def find_by_name(self, name: str) -> Optional[int]:
        """Return the first configured zone whose name matches (case-insensitive)."""
        wanted = name.strip().lower()
        for zone in self.zone_ids():
            if self._slot(zone).name.lower() == wanted:
                return zone
        return None

    # ========================================================================
    # STATE
    # ========================================================================

    def get(self, zone: int, attribute: str) -> Any:
        """Get the stored (native) value of one attribute."""
        self._check_attribute(attribute)
        with self._lock:
            return getattr(self._slot(zone), attribute)

    def set(self, zone: int, attribute: str, value: Any) -> None:
        """Write one attribute and refresh the zone's timestamp."""
        self._check_attribute(attribute)
        with self._lock:
            record = self._slot(zone)
            setattr(record, attribute, value)
            self._touch(record)

    def touch(self, zone: int) -> None:
        """Mark a zone as freshly reported without changing any attribute."""
        with self._lock:
            self._touch(self._slot(zone))

    def _touch(self, record: ZoneState) -> None:
        now = self._clock()
        if now > record.last_updated:
            record.last_updated = now

    def last_updated(self, zone: int) -> float:
        with self._lock:
            return self._slot(zone).last_updated

    def age(self, zone: int) -> float:
        """Seconds since the zone last reported (inf if never)."""
        return self._clock() - self.last_updated(zone)

    def is_fresh(self, zone: int, threshold: float) -> bool:
        """Check if the zone reported within ``threshold`` seconds."""
        return self.age(zone) < threshold

    def all_fresh(self, threshold: float) -> bool:
        """Check if every configured zone is fresh."""
        with self._lock:
            return all(self.is_fresh(zone, threshold) for zone in self.zone_ids())

    def stale_zones(self, threshold: float) -> List[int]:
        """Configured zones whose age exceeds ``threshold``."""
        with self._lock:
            return [zone for zone in self.zone_ids() if self.age(zone) > threshold]

    def record(self, zone: int) -> ZoneState:
        """Return a snapshot copy of a zone record."""
        with self._lock:
            record = self._slot(zone)
            return ZoneState(**vars(record))

    @staticmethod
    def _check_attribute(attribute: str) -> None:
        if attribute not in ATTRIBUTES:
            raise KeyError(f"Unknown zone attribute: {attribute}")
