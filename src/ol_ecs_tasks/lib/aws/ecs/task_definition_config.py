from enum import Enum, unique

from pulumi_aws.cloudwatch import LogGroup
from pulumi_aws.iam import Role
from pydantic import BaseModel, ConfigDict, Field

from ol_ecs_tasks.lib.aws.ecs.container_definition_config import (
    OLContainerDefinitionConfig,
)
from ol_ecs_tasks.lib.ol_types import AWSBase

DEFAULT_CONTAINER_NAME = "container"


@unique
class LaunchTypes(str, Enum):
    fargate = "FARGATE"
    ec2 = "EC2"


@unique
class NetworkMode(str, Enum):
    awsvpc = "awsvpc"
    bridge = "bridge"
    host = "host"
    none = "none"


@unique
class HostOperatingSystem(str, Enum):
    linux = "linux"
    windows = "windows"


class OLClusterTaskDefinitionConfig(AWSBase):
    """Configuration for an ECS task definition that runs in an OLTaskCluster."""

    # Maps to 'family' property which is unique name for Task Definition.
    task_def_name: str
    # Containers keyed by name. The first entry is the one run by default.
    containers: dict[str, OLContainerDefinitionConfig]
    # Task level cpu units. Computed from the containers when not set
    cpu: int | str | None = None
    # Task level memory, in MiB or with a GB suffix. Computed from the containers when
    # not set
    memory: int | str | None = None
    # IAM role that your containers assume to call other AWS services. A role with broad
    # compute access is created when not provided
    task_role: Role | None = None
    # IAM role used by the ECS agent and Docker daemon, e.g. to pull images from ECR and
    # send logs to CloudWatch. A role with AmazonECSTaskExecutionRolePolicy attached is
    # created when not provided
    execution_role: Role | None = None
    # Log group for container output. One with a one day retention is created when not
    # provided
    log_group: LogGroup | None = None
    network_mode: NetworkMode = NetworkMode.bridge
    requires_compatibilities: list[LaunchTypes] = Field(
        default_factory=lambda: [LaunchTypes.ec2], min_length=1
    )
    # How tasks started from this definition are launched
    launch_type: LaunchTypes = LaunchTypes.ec2
    model_config = ConfigDict(arbitrary_types_allowed=True)


class OLFargateTaskDefinitionConfig(AWSBase):
    """Configuration for a Fargate task definition.

    Provide either a full set of ``containers`` or a single ``container``, which is
    registered under the name "container".
    """

    task_def_name: str
    container: OLContainerDefinitionConfig | None = None
    containers: dict[str, OLContainerDefinitionConfig] | None = None
    cpu: int | str | None = None
    memory: int | str | None = None
    task_role: Role | None = None
    execution_role: Role | None = None
    log_group: LogGroup | None = None
    model_config = ConfigDict(arbitrary_types_allowed=True)


class TaskRunOptions(BaseModel):
    # The container to run. Defaults to the first container of the task definition
    container_name: str | None = None
    # Operating system the host must be running
    os: HostOperatingSystem = HostOperatingSystem.linux
    # Overrides for the container environment. Empty values are not sent
    environment: dict[str, str | None] = Field(default_factory=dict)
