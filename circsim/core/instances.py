import logging
from typing import Dict, Iterable, Iterator, List, Tuple

import numpy as np

from circsim.core.buffer import OutputBuffer
from circsim.core.constants import INITIAL_STATE_VECTOR
from circsim.core.state import PhysicsState, SimInstance, SimulationConfig

logger = logging.getLogger(__name__)


class InstanceManager:
    """
    Keeps one PhysicsState per live SimInstance.

    New instances join the shared timeline at the latest time reached by any
    existing instance, so every instance is always on the same forward-only
    clock no matter when it was added. Integration itself is the engine's job;
    the manager is only consulted when the instance set changes.
    """
    def __init__(self, config: SimulationConfig):
        self.config = config
        self.instances: Dict[str, SimInstance] = {}
        self.states: Dict[str, PhysicsState] = {}

    def __len__(self) -> int:
        return len(self.instances)

    def __contains__(self, instance_id: str) -> bool:
        return instance_id in self.instances

    def ids(self) -> List[str]:
        return list(self.instances)

    def pairs(self) -> Iterator[Tuple[SimInstance, PhysicsState]]:
        """(instance, state) in insertion order, for every tracked instance."""
        for instance_id, instance in self.instances.items():
            state = self.states.get(instance_id)
            if state is not None:
                yield instance, state

    def shared_time(self) -> float:
        """Start time for a new instance."""
        sync_time = self.config.initial_time
        for state in self.states.values():
            if state.t > sync_time:
                sync_time = state.t
        return sync_time

    def add(self, instance: SimInstance) -> PhysicsState:
        if instance.id in self.instances:
            raise ValueError(f"Instance '{instance.id}' already exists")
        self.instances[instance.id] = instance
        self.reconcile(self.instances.values())
        return self.states[instance.id]

    def remove(self, instance_id: str) -> SimInstance:
        instance = self.instances.pop(instance_id)
        self.reconcile(self.instances.values())
        return instance

    def reset(self, instance_id: str) -> PhysicsState:
        """Replace an instance's physics state with a fresh one at the shared time."""
        instance = self.instances[instance_id]
        state = self._create_state(instance)
        self.states[instance_id] = state
        logger.info("Reset instance '%s' (%s) at t=%.1f ms", instance_id, instance.name, state.t)
        return state

    def reconcile(self, instances: Iterable[SimInstance]) -> None:
        """
        Make the tracked physics states match the given instance set.

        Creates states for instances not yet tracked and drops states whose
        instance is gone. Existing states are left untouched.
        """
        self.instances = {inst.id: inst for inst in instances}

        for instance in self.instances.values():
            if instance.id not in self.states:
                self.states[instance.id] = self._create_state(instance)
                logger.info("Created instance '%s' (%s) at t=%.1f ms",
                            instance.id, instance.name, self.states[instance.id].t)

        for instance_id in list(self.states):
            if instance_id not in self.instances:
                del self.states[instance_id]
                logger.info("Removed instance '%s'", instance_id)

    def _create_state(self, instance: SimInstance) -> PhysicsState:
        return PhysicsState(
            t=self.shared_time(),
            y=np.array(INITIAL_STATE_VECTOR, dtype=float),
            active_params=instance.params,
            buffer=OutputBuffer(self.config.buffer_retention_ms),
        )
