"""
Mission state store.

Owns the single mission record every participant converges on. The first
server to announce itself seeds the mission; later servers receive the
existing mission instead of replacing it. Only an explicit "set mission"
can replace an active mission.

Every operation returns the frames to broadcast rather than sending them, so
mutation never waits on I/O.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, List

from . import events as ev
from .events import Outbound

logger = logging.getLogger(__name__)

DEFAULT_MISSION_ID = "Default"


@dataclass
class MissionState:
    """The authoritative mission: identifier, opaque payload, running flag."""
    mission_id: Any = DEFAULT_MISSION_ID
    mission_data: Any = field(default_factory=list)
    running: bool = False

    @property
    def is_active(self) -> bool:
        return self.mission_id != DEFAULT_MISSION_ID

    def to_dict(self) -> dict:
        return {
            "missionid": self.mission_id,
            "missiondata": self.mission_data,
            "running": self.running,
        }


class MissionStore:
    """Applies mission events to the one MissionState instance."""

    def __init__(self):
        self._state = MissionState()

    @property
    def state(self) -> MissionState:
        return self._state

    def snapshot(self) -> MissionState:
        """Deep copy of the current state, safe to hand out."""
        return copy.deepcopy(self._state)

    def _payload(self, target: str) -> dict:
        return {
            "target": target,
            "missionid": self._state.mission_id,
            "missiondata": self._state.mission_data,
        }

    def server_announced(self, mission_id: Any, mission_data: Any) -> List[Outbound]:
        """
        A server joined with its own idea of the mission.

        Uninitialized: the proposal becomes the mission. Active: the proposal
        is ignored and the current mission is rebroadcast so the newcomer
        converges on it.
        """
        out: List[Outbound] = []

        if not self._state.is_active:
            if mission_id is not None and mission_id != DEFAULT_MISSION_ID:
                self._state.mission_id = mission_id
                self._state.mission_data = mission_data
                self._state.running = False
                logger.info(f"Mission seeded by server: {mission_id}")
                out.append(Outbound(ev.INIT_SERVER, self._payload("server")))
            else:
                # Nothing to adopt; echo the proposal back as-is
                out.append(Outbound(ev.INIT_SERVER, {
                    "target": "server",
                    "missionid": mission_id,
                    "missiondata": mission_data,
                }))
            return out

        if mission_id != self._state.mission_id:
            logger.info(
                f"Server proposed mission {mission_id}, keeping {self._state.mission_id}"
            )
        out.append(Outbound(ev.INIT_SERVER, self._payload("server")))
        if self._state.running:
            out.append(Outbound(ev.START_MISSION))
        return out

    def unit_announced(self) -> List[Outbound]:
        """A unit joined; tell everyone the current mission."""
        return [Outbound(ev.UNIT_CONNECTED, {
            "missionid": self._state.mission_id,
            "missiondata": self._state.mission_data,
        })]

    def set_mission(self, mission_id: Any, mission_data: Any) -> List[Outbound]:
        """Unconditionally replace the mission. The id is kept as sent; None means Default."""
        logger.info(f"Set mission: {mission_id}")
        if mission_id is None:
            mission_id = DEFAULT_MISSION_ID
        self._state.mission_id = mission_id
        self._state.mission_data = mission_data
        if not self._state.is_active:
            self._state.running = False
        return [Outbound(ev.SET_MISSION, self._payload("unit"))]

    def mission_running(self) -> List[Outbound]:
        if not self._state.is_active:
            logger.warning("Ignoring 'mission running' before a mission is set")
            return []
        self._state.running = True
        logger.info(f"Mission {self._state.mission_id} started")
        return [Outbound(ev.START_MISSION)]

    def mission_stopped(self) -> List[Outbound]:
        self._state.running = False
        logger.info(f"Mission {self._state.mission_id} stopped")
        return [Outbound(ev.STOP_MISSION)]

    def mission_time(self, payload: Any) -> List[Outbound]:
        """Clock updates are presentation only and never touch the state."""
        return [Outbound(ev.SET_TIME, payload, relay=True)]
