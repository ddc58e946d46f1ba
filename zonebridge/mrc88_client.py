"""Xantech MRC88 audio matrix client."""

import logging
from typing import Dict, Optional

from .client import BridgeClient
from .commands import MRC88Commands
from .connection import BridgeConnection
from .const import (
    ATTR_BALANCE,
    ATTR_BASS,
    ATTR_MUTE,
    ATTR_POWER,
    ATTR_SOURCE,
    ATTR_TREBLE,
    ATTR_VOLUME,
    DEFAULT_SEND_TIMEOUT,
    DEFAULT_SOURCE_NAMES,
    MRC88_FIRST_ZONE,
    MRC88_MAX_SOURCES,
    MRC88_MAX_ZONES,
    MRC88_POLL_INTERVAL,
    MRC88_READINESS_THRESHOLD,
    MRC88_REFRESH_THRESHOLD,
    MRC88_SINGLE_ZONES,
)
from .models import BALANCE_SCALE, TONE_SCALE, VOLUME_SCALE, Scale
from .mrc88_parser import MRC88Parser
from .store import ZoneStateStore

_LOGGER = logging.getLogger(__name__)


class MRC88Client(BridgeClient):
    """Async client for a Xantech MRC88 (8 zones, 16 when expanded)."""

    def __init__(
        self,
        connection: BridgeConnection,
        zone_count: int = MRC88_SINGLE_ZONES,
        zone_names: Optional[Dict[int, str]] = None,
        source_names: Optional[Dict[int, str]] = None,
        poll_interval: float = MRC88_POLL_INTERVAL,
        refresh_threshold: float = MRC88_REFRESH_THRESHOLD,
        readiness_threshold: float = MRC88_READINESS_THRESHOLD,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
        **store_kwargs,
    ) -> None:
        """Initialize client.

        Args:
            connection: Transport to the matrix
            zone_count: Zones in use, 1-16 (8 single unit, 16 expanded)
            zone_names: Optional display names keyed by zone number
            source_names: Optional display names keyed by source number (1-8)
            poll_interval: Seconds between poll ticks
            refresh_threshold: Zones older than this are re-queried
            readiness_threshold: All zones younger than this means READY
            send_timeout: Seconds allowed for each send
        """
        store = ZoneStateStore(
            capacity=MRC88_MAX_ZONES,
            configured_count=zone_count,
            first_index=MRC88_FIRST_ZONE,
            names=zone_names,
            **store_kwargs,
        )
        super().__init__(
            connection,
            store,
            MRC88Commands(zone_count, MRC88_MAX_SOURCES),
            MRC88Parser(),
            poll_interval=poll_interval,
            refresh_threshold=refresh_threshold,
            readiness_threshold=readiness_threshold,
            send_timeout=send_timeout,
        )
        self.source_names = dict(DEFAULT_SOURCE_NAMES)
        self.source_names.update(source_names or {})

    async def _command(self, frame: str, zone: int) -> bool:
        """Send a zone command followed by a zone data request."""
        refresh = self.commands.zone_refresh(zone)
        sent = await self._send(frame)
        return await self._send(refresh) and sent

    # ========================================================================
    # POWER
    # ========================================================================

    async def set_power(self, zone: int, on: bool) -> bool:
        """Turn a zone on or off.

        Raises:
            OutOfRangeTargetError: Zone not configured (nothing is sent)
        """
        frame = self.commands.set_power(zone, on)
        _LOGGER.info("Zone %d power %s", zone, "on" if on else "off")
        return await self._command(frame, zone)

    async def turn_on(self, zone: int) -> bool:
        return await self.set_power(zone, True)

    async def turn_off(self, zone: int) -> bool:
        return await self.set_power(zone, False)

    async def toggle_power(self, zone: int) -> bool:
        frame = self.commands.toggle_power(zone)
        _LOGGER.info("Zone %d power toggle", zone)
        return await self._command(frame, zone)

    async def turn_on_all(self) -> bool:
        results = [await self.turn_on(zone) for zone in self.store.zone_ids()]
        return all(results)

    async def turn_off_all(self) -> bool:
        results = [await self.turn_off(zone) for zone in self.store.zone_ids()]
        return all(results)

    # ========================================================================
    # MUTE
    # ========================================================================

    async def set_mute(self, zone: int, mute: bool) -> bool:
        frame = self.commands.set_mute(zone, mute)
        _LOGGER.info("Zone %d %s", zone, "muted" if mute else "unmuted")
        return await self._command(frame, zone)

    async def mute(self, zone: int) -> bool:
        return await self.set_mute(zone, True)

    async def unmute(self, zone: int) -> bool:
        return await self.set_mute(zone, False)

    async def toggle_mute(self, zone: int) -> bool:
        frame = self.commands.toggle_mute(zone)
        _LOGGER.info("Zone %d mute toggle", zone)
        return await self._command(frame, zone)

    async def mute_all(self) -> bool:
        results = [await self.mute(zone) for zone in self.store.zone_ids()]
        return all(results)

    async def unmute_all(self) -> bool:
        results = [await self.unmute(zone) for zone in self.store.zone_ids()]
        return all(results)

    # ========================================================================
    # VOLUME, TONE, BALANCE
    # ========================================================================

    async def set_volume(self, zone: int, volume: float) -> bool:
        """Set volume.

        Args:
            zone: Zone number
            volume: Volume 0-100 (clamped; sent to the matrix as 0-38)
        """
        frame = self.commands.set_volume(zone, volume)
        _LOGGER.info("Zone %d volume %s", zone, volume)
        return await self._command(frame, zone)

    async def volume_up(self, zone: int) -> bool:
        return await self._command(self.commands.volume_up(zone), zone)

    async def volume_down(self, zone: int) -> bool:
        return await self._command(self.commands.volume_down(zone), zone)

    async def set_bass(self, zone: int, bass: float) -> bool:
        frame = self.commands.set_bass(zone, bass)
        _LOGGER.info("Zone %d bass %s", zone, bass)
        return await self._command(frame, zone)

    async def bass_up(self, zone: int) -> bool:
        return await self._command(self.commands.bass_up(zone), zone)

    async def bass_down(self, zone: int) -> bool:
        return await self._command(self.commands.bass_down(zone), zone)

    async def set_treble(self, zone: int, treble: float) -> bool:
        frame = self.commands.set_treble(zone, treble)
        _LOGGER.info("Zone %d treble %s", zone, treble)
        return await self._command(frame, zone)

    async def treble_up(self, zone: int) -> bool:
        return await self._command(self.commands.treble_up(zone), zone)

    async def treble_down(self, zone: int) -> bool:
        return await self._command(self.commands.treble_down(zone), zone)

    async def set_balance(self, zone: int, balance: float) -> bool:
        frame = self.commands.set_balance(zone, balance)
        _LOGGER.info("Zone %d balance %s", zone, balance)
        return await self._command(frame, zone)

    async def balance_left(self, zone: int) -> bool:
        return await self._command(self.commands.balance_left(zone), zone)

    async def balance_right(self, zone: int) -> bool:
        return await self._command(self.commands.balance_right(zone), zone)

    # ========================================================================
    # SOURCES
    # ========================================================================

    async def set_source(self, zone: int, source: int) -> bool:
        """Route a source (1-8, clamped) to a zone."""
        frame = self.commands.set_source(zone, source)
        _LOGGER.info("Zone %d source %d", zone, self.commands.clamp_source(source))
        return await self._command(frame, zone)

    async def cycle_source(self, zone: int) -> bool:
        """Step the zone to the next source, wrapping from 8 back to 1."""
        self.commands.validate_zone(zone)
        current = self.get_source(zone)
        source = current + 1 if current is not None else 1
        if not 1 <= source <= self.commands.source_count:
            source = 1
        return await self.set_source(zone, source)

    # ========================================================================
    # STATE
    # ========================================================================

    def _external(self, zone: int, attribute: str, scale: Scale) -> Optional[int]:
        native = self.store.get(zone, attribute)
        return None if native is None else scale.to_external(native)

    def get_power(self, zone: int) -> Optional[bool]:
        return self.store.get(zone, ATTR_POWER)

    def get_mute(self, zone: int) -> Optional[bool]:
        return self.store.get(zone, ATTR_MUTE)

    def get_volume(self, zone: int) -> Optional[int]:
        """Last reported volume, 0-100."""
        return self._external(zone, ATTR_VOLUME, VOLUME_SCALE)

    def get_bass(self, zone: int) -> Optional[int]:
        return self._external(zone, ATTR_BASS, TONE_SCALE)

    def get_treble(self, zone: int) -> Optional[int]:
        return self._external(zone, ATTR_TREBLE, TONE_SCALE)

    def get_balance(self, zone: int) -> Optional[int]:
        return self._external(zone, ATTR_BALANCE, BALANCE_SCALE)

    def get_source(self, zone: int) -> Optional[int]:
        """Last reported source, or None before the first report."""
        return self.store.get(zone, ATTR_SOURCE)

    def get_source_name(self, zone: int) -> Optional[str]:
        source = self.get_source(zone)
        if source is None:
            return None
        return self.source_names.get(source, f"Source {source}")
