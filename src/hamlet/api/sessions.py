"""
In-memory session manager for sandbox simulations.

Each session wraps one ``Simulation`` (world, settlements, economy engine,
metrics). Sessions live only as long as the process.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any

from hamlet.core.config import SimulationConfig
from hamlet.experiment.runner import Simulation

logger = logging.getLogger(__name__)


@dataclass
class SimulationSession:
    """A running or completed sandbox session."""

    id: str
    name: str
    config: SimulationConfig
    simulation: Simulation
    status: str = "created"  # created | running | completed
    max_ticks: int = 0

    @property
    def current_tick(self) -> int:
        return self.simulation.tick_count

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "current_tick": self.current_tick,
            "max_ticks": self.max_ticks,
            "current_time": self.simulation.current_time,
            "settlement_count": len(self.simulation.settlements),
            "total_population": sum(s.population for s in self.simulation.settlements),
        }


class SessionManager:
    """Creates, steps and deletes sessions; one lock serializes mutations."""

    def __init__(self) -> None:
        self.sessions: dict[str, SimulationSession] = {}
        self._lock = threading.Lock()

    def create_session(
        self,
        config: SimulationConfig | None = None,
        name: str | None = None,
    ) -> SimulationSession:
        """Create a new simulation session."""
        if config is None:
            config = SimulationConfig()

        session = SimulationSession(
            id=uuid.uuid4().hex[:8],
            name=name or config.experiment_name,
            config=config,
            simulation=Simulation(config),
            max_ticks=config.ticks_to_run,
        )
        with self._lock:
            self.sessions[session.id] = session
        logger.info("Created session %s (%s)", session.id, session.name)
        return session

    def get_session(self, session_id: str) -> SimulationSession:
        """Raises KeyError if not found."""
        try:
            return self.sessions[session_id]
        except KeyError:
            raise KeyError(f"Session '{session_id}' not found") from None

    def list_sessions(self) -> list[dict[str, Any]]:
        return [s.summary() for s in self.sessions.values()]

    def step(self, session_id: str, n: int = 1) -> SimulationSession:
        """Advance a session by up to N ticks, stopping at its tick limit."""
        session = self.get_session(session_id)

        with self._lock:
            if session.status == "completed":
                return session

            session.status = "running"
            for _ in range(max(0, n)):
                if session.current_tick >= session.max_ticks:
                    break
                session.simulation.step()

            if session.current_tick >= session.max_ticks:
                session.status = "completed"

        return session

    def delete_session(self, session_id: str) -> None:
        with self._lock:
            if session_id not in self.sessions:
                raise KeyError(f"Session '{session_id}' not found")
            del self.sessions[session_id]
