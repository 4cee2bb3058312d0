"""Default cpu and memory sizing for Fargate compatible task definitions.

Fargate only accepts a fixed set of (cpu, memory) pairs. When a task definition does
not say how big it should be we add up what its containers ask for and round up to
the closest tier that Fargate understands. Requests that exceed what Fargate supports
are not rejected here; ECS reports those when the task definition is registered.

https://docs.aws.amazon.com/AmazonECS/latest/developerguide/task-cpu-memory-error.html
"""

import math
from collections.abc import Mapping
from typing import NamedTuple

from ol_ecs_tasks.lib.aws.ecs.container_definition_config import (
    OLContainerDefinitionConfig,
)
from ol_ecs_tasks.lib.magic_numbers import (
    FARGATE_CPU_FLOOR_BY_MEMORY,
    HALF_GIGABYTE_MB,
    MINIMUM_FARGATE_CPU_UNITS,
    ONE_GIGABYTE_MB,
)


class TaskSizing(NamedTuple):
    cpu: str
    memory: str


def _memory_tier(minimum_memory: int) -> tuple[int, str]:
    if minimum_memory <= HALF_GIGABYTE_MB:
        return HALF_GIGABYTE_MB, "0.5GB"
    whole_gigabytes = math.ceil(minimum_memory / ONE_GIGABYTE_MB)
    return whole_gigabytes * ONE_GIGABYTE_MB, f"{whole_gigabytes}GB"


def _cpu_tier(minimum_cpu: int, task_memory: int) -> int:
    # Smallest power of two that covers the request, and never below 256 units
    task_cpu = 1 << (max(minimum_cpu, MINIMUM_FARGATE_CPU_UNITS) - 1).bit_length()
    for memory_threshold, cpu_floor in FARGATE_CPU_FLOOR_BY_MEMORY:
        if task_memory > memory_threshold:
            return max(task_cpu, cpu_floor)
    return task_cpu


def compute_fargate_memory_and_cpu(
    containers: Mapping[str, OLContainerDefinitionConfig],
) -> TaskSizing:
    """Compute the smallest Fargate sizing that satisfies a set of containers.

    :param containers: Container definitions keyed by container name
    :type containers: Mapping[str, OLContainerDefinitionConfig]

    :returns: The task level cpu units (e.g. "1024") and memory. Memory is rounded up
              to whole gigabytes, so 5000 MiB gives "5GB" and 5200 MiB gives "6GB".

    :rtype: TaskSizing
    """
    minimum_memory = sum(container.memory_demand for container in containers.values())
    minimum_cpu = sum(container.cpu or 0 for container in containers.values())

    task_memory, task_memory_label = _memory_tier(minimum_memory)
    task_cpu = _cpu_tier(minimum_cpu, task_memory)

    return TaskSizing(cpu=str(task_cpu), memory=task_memory_label)
