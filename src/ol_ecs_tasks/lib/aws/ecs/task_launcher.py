"""Launch one-off ECS tasks from an already deployed task definition.

This code runs outside of the Pulumi engine, e.g. from a deployment script or a
Lambda function, and talks to ECS directly with boto3. Nothing about the network the
task runs in is cached: subnets and security groups are looked up again on every
launch so that changes made after the task definition was deployed are picked up.
"""

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import partial
from typing import Any

import boto3

from ol_ecs_tasks.lib.aws.ecs.container_definition_config import (
    OLContainerDefinitionConfig,
)
from ol_ecs_tasks.lib.aws.ecs.task_definition_config import (
    HostOperatingSystem,
    LaunchTypes,
    NetworkMode,
    TaskRunOptions,
)
from ol_ecs_tasks.lib.errors import ConfigurationError, LaunchError
from ol_ecs_tasks.lib.magic_numbers import ECS_STARTED_BY_MAX_LENGTH

log = logging.getLogger(__name__)

OS_TYPE_ATTRIBUTE = "ecs.os-type"
STARTED_BY_PREFIX = "ol-ecs-tasks"


@dataclass(frozen=True)
class ClusterNetwork:
    subnet_ids: list[str]
    security_group_ids: list[str]
    use_private_subnets: bool


NetworkResolver = Callable[[], ClusterNetwork]


def placement_constraints_for_host(
    os: HostOperatingSystem | None = None,
) -> list[dict[str, str]]:
    os = os or HostOperatingSystem.linux
    return [
        {
            "type": "memberOf",
            "expression": f"attribute:{OS_TYPE_ATTRIBUTE} == {os.value}",
        }
    ]


def resolve_container_environment(
    baseline: Mapping[str, str] | None,
    overrides: Mapping[str, str | None] | None,
) -> dict[str, str]:
    """Overlay environment overrides onto a container's own environment.

    Overrides replace baseline values with the same key. Variables that end up empty
    are dropped instead of being sent as blank overrides.
    """
    environment = {**(baseline or {}), **(overrides or {})}
    return {name: value for name, value in environment.items() if value}


def select_container_name(
    containers: Mapping[str, OLContainerDefinitionConfig],
    container_name: str | None = None,
) -> str:
    """Pick the container to run, defaulting to the first one that was defined.

    :raises ConfigurationError: If the task definition has no containers or the
        requested container is not part of it
    """
    if container_name is None:
        container_name = next(iter(containers), None)
        if container_name is None:
            msg = "No valid container name found to run task for."
            raise ConfigurationError(msg)
    elif container_name not in containers:
        msg = (
            f"Container '{container_name}' is not defined in the task definition. "
            f"Available containers: {list(containers)}"
        )
        raise ConfigurationError(msg)
    return container_name


def _started_by(family: str) -> str:
    return f"{STARTED_BY_PREFIX}-{family}"[:ECS_STARTED_BY_MAX_LENGTH]


class OLTaskLauncher:
    """Runs single instances of a task definition on its cluster.

    Each call to :meth:`run` starts a brand new task. There is no deduplication, so
    calling it twice starts two tasks.
    """

    def __init__(  # noqa: PLR0913
        self,
        cluster_name: str,
        family: str,
        containers: Mapping[str, OLContainerDefinitionConfig],
        launch_type: LaunchTypes,
        network_mode: NetworkMode,
        network_resolver: NetworkResolver,
        region: str = "us-east-1",
        client_factory: Callable[[], Any] | None = None,
    ):
        self.cluster_name = cluster_name
        self.family = family
        self.containers = dict(containers)
        self.launch_type = launch_type
        self.network_mode = network_mode
        self.network_resolver = network_resolver
        self.client_factory = client_factory or partial(
            boto3.client, "ecs", region_name=region
        )

    def build_run_task_request(self, options: TaskRunOptions) -> dict[str, Any]:
        """Assemble the arguments for an ECS RunTask call.

        :param options: The options for this launch
        :type options: TaskRunOptions

        :raises ConfigurationError: If the container to run can not be determined

        :returns: Keyword arguments for ``ecs_client.run_task``

        :rtype: Dict[str, Any]
        """
        container_name = select_container_name(self.containers, options.container_name)
        environment = resolve_container_environment(
            self.containers[container_name].environment, options.environment
        )

        request: dict[str, Any] = {
            "cluster": self.cluster_name,
            "taskDefinition": self.family,
            "count": 1,
            "launchType": self.launch_type.value,
            "placementConstraints": placement_constraints_for_host(options.os),
            "overrides": {
                "containerOverrides": [
                    {
                        "name": container_name,
                        "environment": [
                            {"name": name, "value": value}
                            for name, value in environment.items()
                        ],
                    }
                ]
            },
            "startedBy": _started_by(self.family),
        }

        # Only awsvpc tasks accept a network configuration
        if self.network_mode == NetworkMode.awsvpc:
            network = self.network_resolver()
            assign_public_ip = (
                self.launch_type == LaunchTypes.fargate
                and not network.use_private_subnets
            )
            request["networkConfiguration"] = {
                "awsvpcConfiguration": {
                    "subnets": network.subnet_ids,
                    "securityGroups": network.security_group_ids,
                    "assignPublicIp": "ENABLED" if assign_public_ip else "DISABLED",
                }
            }

        return request

    def _start_task(self, options: TaskRunOptions) -> dict[str, Any]:
        request = self.build_run_task_request(options)
        ecs_client = self.client_factory()

        log.info(
            "Starting task %s on cluster %s (%s)",
            self.family,
            self.cluster_name,
            self.launch_type.value,
        )
        return ecs_client.run_task(**request)

    async def run(self, options: TaskRunOptions | None = None) -> None:
        """Run this task definition in its cluster once.

        :param options: Which container to run, on what OS, with which environment
            overrides. Defaults to the first container on linux
        :type options: TaskRunOptions

        :raises ConfigurationError: If the container to run can not be determined
        :raises LaunchError: If ECS reports failures for the launch
        """
        options = options or TaskRunOptions()
        # The network lookup, client creation and RunTask all block on AWS API calls
        response = await asyncio.to_thread(self._start_task, options)

        failures = response.get("failures") or []
        if failures:
            log.error("Failed to start task %s: %s", self.family, failures)
            raise LaunchError(failures)

        log.debug(
            "Started tasks %s",
            [task.get("taskArn") for task in response.get("tasks", [])],
        )
