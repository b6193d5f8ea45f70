"""
Registration -> Polling phase state machine.

The registrar owns exactly one NetworkStateMachine. State only moves
forward, and each change is pushed to subscribers (usually the broadcast
hook for the `networkState` event stream).
"""

import logging
import threading
from enum import Enum
from typing import Callable, List

from .errors import InvalidPhaseError, MalformedPayloadError

logger = logging.getLogger(__name__)


class NetworkState(Enum):
    """Network phases, in the only order they can occur"""
    REGISTRATION = "registration"
    POLLING = "polling"

    @classmethod
    def from_payload(cls, value) -> 'NetworkState':
        try:
            return cls(value)
        except ValueError:
            raise MalformedPayloadError(f"unknown network state: {value!r}")


StateListener = Callable[[NetworkState], None]


class NetworkStateMachine:
    """Explicit network phase owned by the registrar"""

    def __init__(self, registry):
        self._registry = registry
        self._state = NetworkState.REGISTRATION
        self._listeners: List[StateListener] = []
        self._lock = threading.Lock()

    @property
    def state(self) -> NetworkState:
        return self._state

    def subscribe(self, listener: StateListener):
        self._listeners.append(listener)

    def require(self, phase: NetworkState):
        """Raise InvalidPhaseError unless the network is in phase"""
        if self._state is not phase:
            raise InvalidPhaseError(phase)

    def close_registration(self) -> NetworkState:
        """
        Seal the voter registry, then move to Polling and notify listeners.

        The registry is sealed before the state flips, so no registration
        can land after observers see Polling.
        """
        with self._lock:
            if self._state is NetworkState.POLLING:
                raise InvalidPhaseError(NetworkState.REGISTRATION, "registration has already been closed")
            self._registry.close_registration()
            self._state = NetworkState.POLLING

        logger.info(f"Network state changed to {self._state.value}")
        for listener in list(self._listeners):
            listener(self._state)
        return self._state
