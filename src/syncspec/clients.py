"""Per-client memory states for single- and multi-client scenarios."""
from __future__ import annotations

import logging
from typing import Dict, Optional

from syncspec.memory import MemoryState
from syncspec.models import ConfigurationError

logger = logging.getLogger("syncspec.clients")


class ClientRoster:
    """Holds one MemoryState per simulated client and tracks the active one.

    A single-client roster always uses client 0 and does not tag steps.
    A multi-client roster tags every step it closes with the index of the
    client that was active while the step was open.
    """

    def __init__(self, multi_client: bool = False) -> None:
        self._multi_client = multi_client
        self._states: Dict[int, MemoryState] = {}
        self._active = 0

    @property
    def multi_client(self) -> bool:
        return self._multi_client

    @property
    def active_index(self) -> int:
        return self._active

    @property
    def step_tag(self) -> Optional[int]:
        """Client index to record on closed steps (None when single-client)."""
        return self._active if self._multi_client else None

    @property
    def memory_state(self) -> MemoryState:
        """MemoryState of the active client, created on first use."""
        state = self._states.get(self._active)
        if state is None:
            state = MemoryState()
            self._states[self._active] = state
        return state

    def state_for(self, client_index: int) -> MemoryState:
        if client_index not in self._states:
            raise KeyError(f"No memory state for client {client_index}")
        return self._states[client_index]

    def ensure_selectable(self, client_index: int) -> None:
        """Raise ConfigurationError unless ``client_index`` can be selected."""
        if not self._multi_client:
            raise ConfigurationError(
                "client() requires a multi-client scenario; start it with client(n)"
            )
        if client_index < 0:
            raise ConfigurationError(f"Client index must be >= 0; got {client_index}")

    def select(self, client_index: int) -> None:
        """Make ``client_index`` the active client.

        Raises:
            ConfigurationError: On a single-client roster or a negative index.
        """
        self.ensure_selectable(client_index)
        if client_index != self._active:
            logger.info("Switching to client %d", client_index)
        self._active = client_index
