from collections.abc import Mapping
from enum import Enum, unique
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, PositiveInt

from ol_ecs_tasks.lib.errors import ConfigurationError
from ol_ecs_tasks.lib.magic_numbers import MAXIMUM_PORT_NUMBER


def build_container_log_options(
    log_group_name: str,
    region: str,
    container_name: str,
) -> dict[str, str]:
    return {
        "awslogs-group": log_group_name,
        "awslogs-region": region,
        "awslogs-stream-prefix": container_name,
    }


@unique
class LoadBalancerProtocol(str, Enum):
    http = "HTTP"
    https = "HTTPS"
    tcp = "TCP"
    tls = "TLS"
    udp = "UDP"

    @property
    def load_balancer_type(self) -> str:
        if self in (LoadBalancerProtocol.http, LoadBalancerProtocol.https):
            return "application"
        return "network"

    @property
    def requires_certificate(self) -> bool:
        return self in (LoadBalancerProtocol.https, LoadBalancerProtocol.tls)

    @property
    def container_protocol(self) -> str:
        # Port mappings in a container definition only know about tcp and udp
        return "udp" if self == LoadBalancerProtocol.udp else "tcp"


class OLLoadBalancerPort(BaseModel):
    port: Annotated[
        PositiveInt,
        Field(
            description="Port that the load balancer listener accepts traffic on",
            le=MAXIMUM_PORT_NUMBER,
        ),
    ]
    protocol: Annotated[
        LoadBalancerProtocol,
        Field(description="Protocol used by clients connecting to the load balancer"),
    ] = LoadBalancerProtocol.http
    target_port: Annotated[
        PositiveInt | None,
        Field(
            description=(
                "Port the container listens on. Defaults to the listener port when not"
                " set"
            ),
            le=MAXIMUM_PORT_NUMBER,
        ),
    ] = None
    model_config = ConfigDict(frozen=True)

    @property
    def container_port(self) -> int:
        return self.target_port or self.port


class Secret(BaseModel):
    name: str = Field(..., description="The name of the secret.")
    value_from: str = Field(
        ...,
        alias="valueFrom",
        description=(
            "The full ARN of the AWS Secrets Manager secret or Systems Manager"
            " Parameter Store parameter to expose to the container."
        ),
    )
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# Many more options available (in AWS) that are not defined in this configuration
# https://docs.aws.amazon.com/AmazonECS/latest/APIReference/API_ContainerDefinition.html
class OLContainerDefinitionConfig(BaseModel):
    image: Annotated[
        str,
        Field(
            description=(
                "Fully qualified (registry/repository:tag) where ECS agent "
                "can retrieve image"
            ),
        ),
    ]
    cpu: Annotated[
        PositiveInt | None,
        Field(description="Number of cpu units reserved for container"),
    ] = None
    memory: Annotated[
        PositiveInt | None,
        Field(
            description=(
                "Hard limit of memory (MiB) for this container. "
                "If container exceeds this amount, it will be killed"
            ),
        ),
    ] = None
    memory_reservation: Annotated[
        PositiveInt | None,
        Field(description="Soft limit of memory (MiB) to reserve for the container"),
    ] = None
    environment: Annotated[
        dict[str, str],
        Field(
            default_factory=dict,
            description="Environment variables to pass to container",
        ),
    ]
    load_balancer_port: Annotated[
        OLLoadBalancerPort | None,
        Field(
            description=(
                "The port to create a load balancer for. At most one container in a"
                " task definition can set this. Leave unset for containers that are"
                " only ever run as one-off tasks"
            ),
        ),
    ] = None
    command: Annotated[
        list[str] | None,
        Field(description="The command that is passed to the container"),
    ] = None
    entry_point: Annotated[
        list[str] | None,
        Field(description="Override for the entrypoint of the container image"),
    ] = None
    is_essential: Annotated[
        bool,
        Field(
            description=(
                "Enabling this flag means if this container stops or fails, "
                "all other containers that are part of the task are stopped"
            ),
        ),
    ] = True
    secrets: Annotated[
        list[Secret] | None,
        Field(description="Secrets that will be exposed to your container"),
    ] = None
    privileged: Annotated[
        bool,
        Field(
            description=(
                "If enabled, container is given elevated privileges, similar to 'root'"
                " user"
            ),
        ),
    ] = False
    model_config = ConfigDict(frozen=True)

    @property
    def memory_demand(self) -> int:
        """Memory this container asks of the task, preferring the soft limit."""
        return self.memory_reservation or self.memory or 0


def single_container_with_load_balancer_port(
    containers: Mapping[str, OLContainerDefinitionConfig],
) -> tuple[str, OLContainerDefinitionConfig] | None:
    """Find the one container in a set that asks for a load balancer.

    :param containers: Container definitions keyed by container name
    :type containers: Mapping[str, OLContainerDefinitionConfig]

    :raises ConfigurationError: If more than one container specifies a
        load_balancer_port

    :returns: The name and definition of the load balanced container, or None if no
              container specifies a load_balancer_port.

    :rtype: Optional[Tuple[str, OLContainerDefinitionConfig]]
    """
    match = None
    for container_name, container in containers.items():
        if container.load_balancer_port is None:
            continue
        if match is not None:
            msg = (
                "Only a single container can specify a load_balancer_port. Found"
                f" '{match[0]}' and '{container_name}'"
            )
            raise ConfigurationError(msg)
        match = (container_name, container)
    return match
