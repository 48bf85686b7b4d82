"""Per-session collection of switch channels, addressed by index or internal id."""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, Optional

from .channel import SwitchChannel
from .constants import DEFAULT_PORT_COUNT
from .exceptions import InvalidSwitchIdError, ValidationError
from .profile import ProfileStore, load_channel, save_channel
from .sink import HardwareSink

logger = logging.getLogger(__name__)


class SwitchRegistry:
    """Ordered set of :class:`SwitchChannel` objects owned by one driver session.

    Switch indices are positions in insertion order, starting at 0.
    Internal ids must be unique.
    """

    def __init__(self, channels: Iterable[SwitchChannel] = ()) -> None:
        self._channels: list[SwitchChannel] = []
        for channel in channels:
            self.add(channel)

    @classmethod
    def usb_ports(cls, count: int = DEFAULT_PORT_COUNT) -> SwitchRegistry:
        """Return *count* binary switches ``USB 1``.. with internal ids ``"0"``.."""
        return cls(SwitchChannel(f"USB {i + 1}", str(i)) for i in range(count))

    def __len__(self) -> int:
        return len(self._channels)

    def __iter__(self) -> Iterator[SwitchChannel]:
        return iter(self._channels)

    def __getitem__(self, index: int) -> SwitchChannel:
        if not (0 <= index < len(self._channels)):
            raise InvalidSwitchIdError(
                f"Switch id must be 0-{len(self._channels) - 1}, got {index}"
            )
        return self._channels[index]

    def add(self, channel: SwitchChannel) -> int:
        """Append *channel* and return its index.

        Raises:
            ValidationError: If another channel already uses its internal id.
        """
        if self.find(channel.internal_id) is not None:
            raise ValidationError(f"Duplicate internal id {channel.internal_id!r}")
        self._channels.append(channel)
        return len(self._channels) - 1

    def find(self, internal_id: str) -> Optional[SwitchChannel]:
        """Return the channel driving *internal_id*, or ``None``."""
        for channel in self._channels:
            if channel.internal_id == internal_id:
                return channel
        return None

    def attach(self, sink: Optional[HardwareSink]) -> None:
        """Route every channel's committed values to *sink* (``None`` detaches)."""
        for channel in self._channels:
            channel.sink = sink

    # -- Persistence --------------------------------------------------------

    def save(self, store: ProfileStore, driver_id: str) -> None:
        for index, channel in enumerate(self._channels):
            save_channel(channel, store, driver_id, index)
        logger.info("Saved %d switches to profile %s", len(self._channels), driver_id)

    def load(self, store: ProfileStore, driver_id: str) -> None:
        """Replace each channel with its stored definition.

        Channels keep their internal id, name editability and sink; fields
        absent from the store keep their current values.
        """
        self._channels = [
            load_channel(store, driver_id, index, channel.internal_id, default=channel)
            for index, channel in enumerate(self._channels)
        ]
        logger.info("Loaded %d switches from profile %s", len(self._channels), driver_id)
