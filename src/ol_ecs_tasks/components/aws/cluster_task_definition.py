"""This module defines a Pulumi component resource for ECS task definitions.

A task definition built here can be run as a one-off task at any time after it is
deployed, by awaiting its ``run`` method.

Included:
- ECS Task Definition - Single container or multiple containers (sidecars)
- CloudWatch Log Group (unless one is provided)
- IAM task and execution roles (unless provided)

Optional:
- Load balancer, target group and listener for the one container that asks for it

Required On Input:
- OLTaskCluster
"""

import json
from collections.abc import Callable, Mapping
from typing import Any

import pulumi
from pulumi_aws.cloudwatch import LogGroup
from pulumi_aws.ecs import TaskDefinition

from ol_ecs_tasks.components.aws.task_cluster import (
    OLClusterLoadBalancer,
    OLTaskCluster,
)
from ol_ecs_tasks.components.aws.task_roles import OLECSTaskRoles, OLECSTaskRolesConfig
from ol_ecs_tasks.lib.aws.ecs.container_definition_config import (
    OLContainerDefinitionConfig,
    build_container_log_options,
    single_container_with_load_balancer_port,
)
from ol_ecs_tasks.lib.aws.ecs.task_definition_config import (
    DEFAULT_CONTAINER_NAME,
    LaunchTypes,
    NetworkMode,
    OLClusterTaskDefinitionConfig,
    OLFargateTaskDefinitionConfig,
)
from ol_ecs_tasks.lib.aws.ecs.task_launcher import OLTaskLauncher
from ol_ecs_tasks.lib.aws.ecs.task_sizing import (
    TaskSizing,
    compute_fargate_memory_and_cpu,
)
from ol_ecs_tasks.lib.errors import ConfigurationError, provisioning_errors
from ol_ecs_tasks.lib.magic_numbers import DEFAULT_LOG_RETENTION_DAYS


def build_container_definitions(
    containers: Mapping[str, OLContainerDefinitionConfig],
    log_group_name: str,
    region: str,
    load_balanced: tuple[str, OLClusterLoadBalancer] | None = None,
) -> list[dict[str, Any]]:
    """Translate container configs into the ECS container definition format.

    :param containers: Container definitions keyed by container name
    :type containers: Mapping[str, OLContainerDefinitionConfig]

    :param log_group_name: CloudWatch log group that receives container output
    :type log_group_name: str

    :param region: AWS region of the log group
    :type region: str

    :param load_balanced: Name of the load balanced container and its load balancer
    :type load_balanced: Optional[Tuple[str, OLClusterLoadBalancer]]

    :returns: A list of container definitions, ready to be JSON encoded. Options that
              are not set are left out.

    :rtype: List[Dict[str, Any]]
    """
    definitions = []
    for container_name, container in containers.items():
        secrets = None
        if container.secrets:
            secrets = [secret.model_dump(by_alias=True) for secret in container.secrets]

        definition = {
            "name": container_name,
            "image": container.image,
            "cpu": container.cpu,
            "memory": container.memory,
            "memoryReservation": container.memory_reservation,
            "command": container.command,
            "entryPoint": container.entry_point,
            "essential": container.is_essential,
            "privileged": container.privileged,
            "environment": [
                {"name": key, "value": value}
                for key, value in container.environment.items()
            ],
            "secrets": secrets,
            "logConfiguration": {
                "logDriver": "awslogs",
                "options": build_container_log_options(
                    log_group_name, region, container_name
                ),
            },
        }
        if load_balanced and load_balanced[0] == container_name:
            definition["portMappings"] = load_balanced[1].port_mappings()

        definitions.append(
            {key: value for key, value in definition.items() if value is not None}
        )

    return definitions


class OLClusterTaskDefinition(pulumi.ComponentResource):
    def __init__(
        self,
        cluster: OLTaskCluster,
        config: OLClusterTaskDefinitionConfig,
        opts: pulumi.ResourceOptions | None = None,
        ecs_client_factory: Callable[[], Any] | None = None,
    ):
        super().__init__(
            "ol:ecs_tasks:aws:ecs:OLClusterTaskDefinition",
            config.task_def_name,
            None,
            opts,
        )

        self.resource_options = pulumi.ResourceOptions(parent=self).merge(opts)
        name = config.task_def_name

        if not config.containers:
            msg = "At least one container definition must be defined"
            raise ConfigurationError(msg)
        if config.launch_type not in config.requires_compatibilities:
            msg = (
                f"Launch type {config.launch_type.value} is not one of the required "
                f"compatibilities {[c.value for c in config.requires_compatibilities]}"
            )
            raise ConfigurationError(msg)

        self.cluster = cluster
        self.containers = dict(config.containers)
        self.launch_type = config.launch_type
        self.network_mode = config.network_mode

        if config.log_group:
            pulumi.log.debug("using log group provided by caller")
            self.log_group = config.log_group
        else:
            pulumi.log.debug(f"creating log group for {name}")
            # Only input and registration errors surface here. AWS create failures are
            # reported by the engine after the constructor returns
            with provisioning_errors(f"log group for {name}"):
                self.log_group = LogGroup(
                    f"{name}-log-group",
                    retention_in_days=DEFAULT_LOG_RETENTION_DAYS,
                    tags=config.tags,
                    opts=self.resource_options,
                )

        load_balanced_container = single_container_with_load_balancer_port(
            self.containers
        )

        self.load_balancer = None
        load_balanced = None
        if load_balanced_container:
            container_name, container = load_balanced_container
            pulumi.log.debug(f"container {container_name} will be load balanced")
            self.load_balancer = cluster.create_load_balancer(
                f"{name}-{container_name}",
                container.load_balancer_port,
                config.network_mode,
                opts=self.resource_options,
            )
            load_balanced = (container_name, self.load_balancer)

        if config.task_role and config.execution_role:
            self.task_role = config.task_role
            self.execution_role = config.execution_role
        else:
            roles = OLECSTaskRoles(
                OLECSTaskRolesConfig(
                    role_name_prefix=name,
                    task_role=config.task_role,
                    execution_role=config.execution_role,
                    tags=config.tags,
                    region=config.region,
                ),
                opts=self.resource_options,
            )
            self.task_role = roles.task_role
            self.execution_role = roles.execution_role

        containers = self.containers
        container_definitions = self.log_group.name.apply(
            lambda log_group_name: json.dumps(
                build_container_definitions(
                    containers, log_group_name, config.region, load_balanced
                )
            )
        )

        self.sizing = self.resolve_sizing(config)
        pulumi.log.debug(f"task {name} sized at {self.sizing}")

        # Only input and registration errors surface here. AWS create failures are
        # reported by the engine after the constructor returns
        with provisioning_errors(f"task definition {name}"):
            self.task_definition = TaskDefinition(
                f"{name}-task-definition",
                family=name,
                container_definitions=container_definitions,
                cpu=self.sizing.cpu,
                memory=self.sizing.memory,
                task_role_arn=self.task_role.arn,
                execution_role_arn=self.execution_role.arn,
                network_mode=config.network_mode.value,
                requires_compatibilities=[
                    compatibility.value
                    for compatibility in config.requires_compatibilities
                ],
                tags=config.tags,
                opts=self.resource_options,
            )

        self.launcher = OLTaskLauncher(
            cluster_name=cluster.cluster_name,
            family=name,
            containers=self.containers,
            launch_type=config.launch_type,
            network_mode=config.network_mode,
            network_resolver=cluster.network_resolver(),
            region=config.region,
            client_factory=ecs_client_factory,
        )
        self.run = self.launcher.run

        component_outputs = {
            "task_definition": self.task_definition,
            "log_group": self.log_group,
        }
        if self.load_balancer:
            component_outputs["load_balancer"] = self.load_balancer.load_balancer

        self.register_outputs(component_outputs)

    @staticmethod
    def resolve_sizing(config: OLClusterTaskDefinitionConfig) -> TaskSizing:
        """Use the configured cpu and memory, computing whichever is missing."""
        if config.cpu is not None and config.memory is not None:
            return TaskSizing(cpu=str(config.cpu), memory=str(config.memory))

        computed = compute_fargate_memory_and_cpu(config.containers)
        return TaskSizing(
            cpu=computed.cpu if config.cpu is None else str(config.cpu),
            memory=computed.memory if config.memory is None else str(config.memory),
        )


def build_fargate_task_definition(
    cluster: OLTaskCluster,
    config: OLFargateTaskDefinitionConfig,
    opts: pulumi.ResourceOptions | None = None,
    ecs_client_factory: Callable[[], Any] | None = None,
) -> OLClusterTaskDefinition:
    """Build a task definition that runs on Fargate.

    :param cluster: Cluster the task is launched into
    :type cluster: OLTaskCluster

    :param config: Configuration for the Fargate task definition
    :type config: OLFargateTaskDefinitionConfig

    :raises ConfigurationError: If neither ``container`` nor ``containers`` is set

    :returns: A task definition using awsvpc networking that requires Fargate.

    :rtype: OLClusterTaskDefinition
    """
    if config.containers:
        containers = config.containers
    elif config.container:
        containers = {DEFAULT_CONTAINER_NAME: config.container}
    else:
        msg = "Either container or containers must be provided"
        raise ConfigurationError(msg)

    return OLClusterTaskDefinition(
        cluster,
        OLClusterTaskDefinitionConfig(
            task_def_name=config.task_def_name,
            containers=containers,
            cpu=config.cpu,
            memory=config.memory,
            task_role=config.task_role,
            execution_role=config.execution_role,
            log_group=config.log_group,
            network_mode=NetworkMode.awsvpc,
            requires_compatibilities=[LaunchTypes.fargate],
            launch_type=LaunchTypes.fargate,
            tags=config.tags,
            region=config.region,
        ),
        opts=opts,
        ecs_client_factory=ecs_client_factory,
    )


def build_ec2_task_definition(
    cluster: OLTaskCluster,
    config: OLClusterTaskDefinitionConfig,
    opts: pulumi.ResourceOptions | None = None,
    ecs_client_factory: Callable[[], Any] | None = None,
) -> OLClusterTaskDefinition:
    """Build a task definition that runs on the EC2 instances of the cluster."""
    ec2_config = config.model_copy(
        update={
            "requires_compatibilities": [LaunchTypes.ec2],
            "launch_type": LaunchTypes.ec2,
        }
    )
    return OLClusterTaskDefinition(
        cluster, ec2_config, opts=opts, ecs_client_factory=ecs_client_factory
    )
