"""This module defines a Pulumi component resource for an ECS cluster that runs tasks.

This includes:

- ECS Cluster (unless an existing one is provided)
- EC2 Security Group shared by the tasks launched in the cluster

On request, for a task definition with a load balanced container:

- EC2 Load Balancer (application for HTTP(S), network for TCP/UDP/TLS)
- EC2 Target Group
- EC2 Listener

Required On Input:
- VPC
- Subnets (Implicit)
"""

from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from typing import Any

import boto3
import pulumi
from pulumi_aws.ec2 import (
    GetSubnetsFilterArgs,
    SecurityGroup,
    SecurityGroupEgressArgs,
    SecurityGroupIngressArgs,
    get_subnets,
)
from pulumi_aws.ecs import Cluster
from pulumi_aws.lb import (
    Listener,
    ListenerDefaultActionArgs,
    LoadBalancer,
    TargetGroup,
)
from pydantic import ConfigDict

from ol_ecs_tasks.lib.aws.ec2_helper import (
    security_group_ids_by_name,
    subnet_ids_for_vpc,
)
from ol_ecs_tasks.lib.aws.ecs.container_definition_config import (
    LoadBalancerProtocol,
    OLLoadBalancerPort,
)
from ol_ecs_tasks.lib.aws.ecs.task_definition_config import NetworkMode
from ol_ecs_tasks.lib.aws.ecs.task_launcher import ClusterNetwork, NetworkResolver
from ol_ecs_tasks.lib.errors import ConfigurationError, provisioning_errors
from ol_ecs_tasks.lib.magic_numbers import (
    AWS_LOAD_BALANCER_NAME_MAX_LENGTH,
    AWS_TARGET_GROUP_NAME_MAX_LENGTH,
)
from ol_ecs_tasks.lib.ol_types import AWSBase

DEFAULT_SSL_POLICY = "ELBSecurityPolicy-TLS13-1-2-2021-06"


class OLTaskClusterConfig(AWSBase):
    """Configuration for an ECS cluster that tasks are launched into."""

    # Name of the ECS cluster. Tasks are launched by referencing this name
    cluster_name: str
    # Existing cluster to use. One named cluster_name is created if not provided
    cluster: Cluster | None = None
    # VPC that tasks and load balancers are deployed into
    vpc_id: str
    # Name of the security group attached to launched tasks
    security_group_name: str
    # Create the task security group. Set to False when it is managed elsewhere
    create_security_group: bool = True
    # Launch tasks into the private subnets of the VPC instead of the public ones
    use_private_subnets: bool = False
    # ACM certificate used by HTTPS and TLS load balancer listeners
    certificate_arn: str | None = None
    model_config = ConfigDict(arbitrary_types_allowed=True)


@dataclass(frozen=True)
class OLClusterLoadBalancer:
    """Handle for the load balancer resources created for a container."""

    load_balancer: LoadBalancer
    target_group: TargetGroup
    listener: Listener
    port: OLLoadBalancerPort

    def port_mappings(self) -> list[dict[str, Any]]:
        return [
            {
                "containerPort": self.port.container_port,
                "protocol": self.port.protocol.container_protocol,
            }
        ]


def _truncated_name(name: str, max_length: int) -> str:
    return name[:max_length].rstrip("-")


class OLTaskCluster(pulumi.ComponentResource):
    def __init__(
        self,
        config: OLTaskClusterConfig,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__(
            "ol:ecs_tasks:aws:ecs:OLTaskCluster",
            config.cluster_name,
            None,
            opts,
        )

        self.resource_options = pulumi.ResourceOptions(parent=self).merge(opts)
        self.config = config
        self.cluster_name = config.cluster_name
        self.vpc_id = config.vpc_id
        self.use_private_subnets = config.use_private_subnets

        if config.cluster:
            pulumi.log.debug(
                f"using existing ECS Cluster '{config.cluster_name}' provided in arguments"  # noqa: E501
            )
            self.cluster = config.cluster
        else:
            pulumi.log.debug(f"creating new ECS cluster {config.cluster_name}")
            self.cluster = Cluster(
                f"{config.cluster_name}-cluster",
                name=config.cluster_name,
                tags=config.tags,
                opts=self.resource_options,
            )

        self.security_group = None
        if config.create_security_group:
            self.security_group = SecurityGroup(
                f"{config.cluster_name}-task-sg",
                name=config.security_group_name,
                description=f"Tasks launched in the {config.cluster_name} cluster",
                vpc_id=config.vpc_id,
                egress=[
                    SecurityGroupEgressArgs(
                        protocol="-1",
                        from_port=0,
                        to_port=0,
                        cidr_blocks=["0.0.0.0/0"],
                    )
                ],
                tags=config.tags,
                opts=self.resource_options,
            )

        component_outputs = {"cluster": self.cluster}
        if self.security_group:
            component_outputs["security_group"] = self.security_group
        self.register_outputs(component_outputs)

    def create_load_balancer(
        self,
        name: str,
        port: OLLoadBalancerPort,
        network_mode: NetworkMode,
        opts: pulumi.ResourceOptions | None = None,
    ) -> OLClusterLoadBalancer:
        """Build a load balancer that forwards traffic to a container.

        :param name: Base name for the created resources
        :type name: str

        :param port: The port the container wants load balanced
        :type port: OLLoadBalancerPort

        :param network_mode: Network mode of the task definition the container belongs
            to. Determines how the target group reaches the container
        :type network_mode: NetworkMode

        :param opts: The resource options to use for customizing created Pulumi
            resources
        :type opts: ResourceOptions

        :raises ConfigurationError: If the cluster can not serve the requested port
        :raises PlatformProvisioningError: If any of the resources can not be created

        :returns: Handle on the load balancer, target group and listener

        :rtype: OLClusterLoadBalancer
        """
        if network_mode == NetworkMode.none:
            msg = "Containers in a task definition without networking can not be load balanced"  # noqa: E501
            raise ConfigurationError(msg)
        if port.protocol.requires_certificate and not self.config.certificate_arn:
            msg = (
                f"{port.protocol.value} load balancer requested for {name} but the "
                f"cluster {self.cluster_name} has no certificate_arn configured"
            )
            raise ConfigurationError(msg)

        resource_options = opts or self.resource_options
        load_balancer_type = port.protocol.load_balancer_type
        pulumi.log.debug(
            f"creating {load_balancer_type} load balancer {name} on port {port.port}"
        )

        # Subnet lookup, input and registration errors surface here. AWS create
        # failures are reported by the engine after the constructor returns
        with provisioning_errors(f"load balancer {name}"):
            lb_subnets = get_subnets(
                filters=[
                    GetSubnetsFilterArgs(name="vpc-id", values=[self.vpc_id]),
                    GetSubnetsFilterArgs(
                        name="map-public-ip-on-launch", values=["true"]
                    ),
                ]
            )

            lb_security_groups = None
            if load_balancer_type == "application":
                lb_security_group = SecurityGroup(
                    f"{name}-lb-sg",
                    vpc_id=self.vpc_id,
                    ingress=[
                        SecurityGroupIngressArgs(
                            protocol="tcp",
                            from_port=port.port,
                            to_port=port.port,
                            cidr_blocks=["0.0.0.0/0"],
                        )
                    ],
                    egress=[
                        SecurityGroupEgressArgs(
                            protocol="-1",
                            from_port=0,
                            to_port=0,
                            cidr_blocks=["0.0.0.0/0"],
                        )
                    ],
                    tags=self.config.tags,
                    opts=resource_options,
                )
                lb_security_groups = [lb_security_group.id]

            load_balancer = LoadBalancer(
                f"{name}-lb",
                name=_truncated_name(f"{name}-lb", AWS_LOAD_BALANCER_NAME_MAX_LENGTH),
                internal=False,
                load_balancer_type=load_balancer_type,
                security_groups=lb_security_groups,
                subnets=lb_subnets.ids,
                tags=self.config.tags,
                opts=resource_options,
            )

            target_group = TargetGroup(
                f"{name}-tg",
                name=_truncated_name(f"{name}-tg", AWS_TARGET_GROUP_NAME_MAX_LENGTH),
                port=port.container_port,
                protocol=self._target_protocol(port.protocol),
                target_type="ip" if network_mode == NetworkMode.awsvpc else "instance",
                vpc_id=self.vpc_id,
                tags=self.config.tags,
                opts=resource_options,
            )

            certificate_arn = None
            ssl_policy = None
            if port.protocol.requires_certificate:
                certificate_arn = self.config.certificate_arn
                ssl_policy = DEFAULT_SSL_POLICY

            listener = Listener(
                f"{name}-listener",
                load_balancer_arn=load_balancer.arn,
                port=port.port,
                protocol=port.protocol.value,
                certificate_arn=certificate_arn,
                ssl_policy=ssl_policy,
                default_actions=[
                    ListenerDefaultActionArgs(
                        type="forward", target_group_arn=target_group.arn
                    )
                ],
                tags=self.config.tags,
                opts=resource_options,
            )

        return OLClusterLoadBalancer(
            load_balancer=load_balancer,
            target_group=target_group,
            listener=listener,
            port=port,
        )

    @staticmethod
    def _target_protocol(protocol: LoadBalancerProtocol) -> str:
        # TLS and HTTPS terminate at the load balancer
        if protocol == LoadBalancerProtocol.https:
            return LoadBalancerProtocol.http.value
        if protocol == LoadBalancerProtocol.tls:
            return LoadBalancerProtocol.tcp.value
        return protocol.value

    def network_resolver(
        self, client_factory: Callable[[], Any] | None = None
    ) -> NetworkResolver:
        """Build a function that looks up the current network of the cluster.

        The returned function queries EC2 every time it is called, and raises
        ConfigurationError when the VPC has no matching subnets or the task security
        group can not be found.

        :param client_factory: Callable returning a boto3 EC2 client. Defaults to a
            client for the region of the cluster
        :type client_factory: Callable[[], Any]

        :returns: A function returning the current subnets and security groups for
                  tasks in this cluster.

        :rtype: Callable[[], ClusterNetwork]
        """
        vpc_id = self.vpc_id
        security_group_name = self.config.security_group_name
        use_private_subnets = self.use_private_subnets
        client_factory = client_factory or partial(
            boto3.client, "ec2", region_name=self.config.region
        )

        def resolve_network() -> ClusterNetwork:
            ec2_client = client_factory()
            subnet_ids = subnet_ids_for_vpc(
                ec2_client, vpc_id, public=not use_private_subnets
            )
            if not subnet_ids:
                subnet_kind = "private" if use_private_subnets else "public"
                msg = f"No {subnet_kind} subnets found in VPC {vpc_id}"
                raise ConfigurationError(msg)

            # ECS falls back to the VPC default group when none are sent
            security_group_ids = security_group_ids_by_name(
                ec2_client, vpc_id, security_group_name
            )
            if not security_group_ids:
                msg = (
                    f"No security group named {security_group_name} found in VPC "
                    f"{vpc_id}"
                )
                raise ConfigurationError(msg)

            return ClusterNetwork(
                subnet_ids=subnet_ids,
                security_group_ids=security_group_ids,
                use_private_subnets=use_private_subnets,
            )

        return resolve_network
