"""C-Bus lighting gateway client."""

import logging
from typing import Dict, Optional

from .cbus_parser import CBusParser
from .client import BridgeClient
from .commands import DEFAULT_RAMP_RATE, CBusCommands
from .connection import BridgeConnection
from .const import (
    ATTR_GROUP_STATE,
    ATTR_LEVEL,
    ATTR_POWER,
    CBUS_FIRST_GROUP,
    CBUS_MAX_GROUPS,
    CBUS_POLL_INTERVAL,
    CBUS_READINESS_THRESHOLD,
    CBUS_REFRESH_THRESHOLD,
    DEFAULT_SEND_TIMEOUT,
)
from .exceptions import OutOfRangeTargetError
from .models import LEVEL_SCALE, GroupState
from .store import ZoneStateStore

_LOGGER = logging.getLogger(__name__)


class CBusClient(BridgeClient):
    """Async client for a C-Bus lighting network (groups 0-255)."""

    def __init__(
        self,
        connection: BridgeConnection,
        group_count: int = CBUS_MAX_GROUPS,
        group_names: Optional[Dict[int, str]] = None,
        poll_interval: float = CBUS_POLL_INTERVAL,
        refresh_threshold: float = CBUS_REFRESH_THRESHOLD,
        readiness_threshold: float = CBUS_READINESS_THRESHOLD,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
        verify_checksum: bool = True,
        **store_kwargs,
    ) -> None:
        """Initialize client.

        Args:
            connection: Transport to the C-Bus serial interface
            group_count: Number of group addresses in use (0 .. group_count-1)
            group_names: Optional display names keyed by group address
            poll_interval: Seconds between poll ticks
            refresh_threshold: Groups older than this are re-queried
            readiness_threshold: All groups younger than this means READY
            send_timeout: Seconds allowed for each send
            verify_checksum: Reject received frames with a bad checksum
        """
        store = ZoneStateStore(
            capacity=CBUS_MAX_GROUPS,
            configured_count=group_count,
            first_index=CBUS_FIRST_GROUP,
            names=group_names,
            default_name="Group {}",
            **store_kwargs,
        )
        super().__init__(
            connection,
            store,
            CBusCommands(group_count),
            CBusParser(verify_checksum=verify_checksum),
            poll_interval=poll_interval,
            refresh_threshold=refresh_threshold,
            readiness_threshold=readiness_threshold,
            send_timeout=send_timeout,
        )

    def _group_by_name(self, name: str) -> int:
        group = self.store.find_by_name(name)
        if group is None:
            raise OutOfRangeTargetError(f"No group named {name!r}")
        return group

    # ========================================================================
    # SWITCHING
    # ========================================================================

    async def set_power(self, group: int, on: bool) -> bool:
        """Switch a group on or off.

        Raises:
            OutOfRangeTargetError: Group not configured (nothing is sent)
        """
        frame = self.commands.switch(group, on)
        _LOGGER.info("Switching group %d %s", group, "on" if on else "off")
        return await self._send(frame)

    async def turn_on(self, group: int) -> bool:
        return await self.set_power(group, True)

    async def turn_off(self, group: int) -> bool:
        return await self.set_power(group, False)

    async def toggle_power(self, group: int) -> bool:
        """Switch a group to the opposite of its last reported state."""
        return await self.set_power(group, not self.get_power(group))

    async def turn_on_by_name(self, name: str) -> bool:
        return await self.turn_on(self._group_by_name(name))

    async def turn_off_by_name(self, name: str) -> bool:
        return await self.turn_off(self._group_by_name(name))

    async def turn_on_all(self) -> bool:
        """Switch every configured group on."""
        results = [await self.turn_on(group) for group in self.store.zone_ids()]
        return all(results)

    async def turn_off_all(self) -> bool:
        """Switch every configured group off."""
        results = [await self.turn_off(group) for group in self.store.zone_ids()]
        return all(results)

    # ========================================================================
    # LEVELS
    # ========================================================================

    async def ramp_level(self, group: int, level: float, rate: str = DEFAULT_RAMP_RATE) -> bool:
        """Ramp a group to a level (0-100) over a named rate.

        Args:
            group: Group address
            level: Target level, 0-100 (clamped)
            rate: Key of RAMP_RATES, e.g. "4 Sec" or "Stop Ramp"

        Raises:
            OutOfRangeTargetError: Group not configured (nothing is sent)
            ValueError: Unknown rate name
        """
        frame = self.commands.ramp(group, level, rate)
        _LOGGER.info("Ramping group %d to %s over %s", group, level, rate)
        return await self._send(frame)

    async def set_level(self, group: int, level: float) -> bool:
        """Set a group's level immediately."""
        return await self.ramp_level(group, level, DEFAULT_RAMP_RATE)

    async def set_level_by_name(self, name: str, level: float) -> bool:
        return await self.set_level(self._group_by_name(name), level)

    # ========================================================================
    # STATE
    # ========================================================================

    def get_power(self, group: int) -> bool:
        """Last reported on/off state (False if never reported)."""
        return bool(self.store.get(group, ATTR_POWER))

    def get_level(self, group: int) -> Optional[int]:
        """Last reported level, 0-100."""
        level = self.store.get(group, ATTR_LEVEL)
        return None if level is None else LEVEL_SCALE.to_external(level)

    def get_group_state(self, group: int) -> Optional[GroupState]:
        return self.store.get(group, ATTR_GROUP_STATE)
