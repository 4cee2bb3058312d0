import json

import pulumi
import pytest
from ol_ecs_tasks.components.aws.cluster_task_definition import (
    OLClusterTaskDefinition,
    build_container_definitions,
    build_ec2_task_definition,
    build_fargate_task_definition,
)
from ol_ecs_tasks.components.aws.task_cluster import OLTaskCluster, OLTaskClusterConfig
from ol_ecs_tasks.lib.aws.ecs.container_definition_config import (
    OLContainerDefinitionConfig,
    OLLoadBalancerPort,
    Secret,
)
from ol_ecs_tasks.lib.aws.ecs.task_definition_config import (
    LaunchTypes,
    NetworkMode,
    OLClusterTaskDefinitionConfig,
    OLFargateTaskDefinitionConfig,
)
from ol_ecs_tasks.lib.errors import ConfigurationError
from pulumi_aws.cloudwatch import LogGroup
from pulumi_aws.iam import Role


def build_cluster(mock_tags, mock_vpc_id):
    return OLTaskCluster(
        OLTaskClusterConfig(
            cluster_name="batch-qa",
            vpc_id=mock_vpc_id,
            security_group_name="batch-qa-tasks",
            tags=mock_tags,
        )
    )


def test_container_definitions_format():
    containers = {
        "app": OLContainerDefinitionConfig(
            image="mitodl/app:latest",
            memory=512,
            command=["./manage.py", "migrate"],
            environment={"DJANGO_SETTINGS_MODULE": "app.settings"},
            secrets=[Secret(name="DB_PASSWORD", value_from="arn:aws:ssm:::db")],
        ),
        "sidecar": OLContainerDefinitionConfig(image="fluentbit", is_essential=False),
    }

    definitions = build_container_definitions(
        containers, "batch-migrate-log-group", "us-east-1"
    )

    assert definitions[0] == {
        "name": "app",
        "image": "mitodl/app:latest",
        "memory": 512,
        "command": ["./manage.py", "migrate"],
        "essential": True,
        "privileged": False,
        "environment": [{"name": "DJANGO_SETTINGS_MODULE", "value": "app.settings"}],
        "secrets": [{"name": "DB_PASSWORD", "valueFrom": "arn:aws:ssm:::db"}],
        "logConfiguration": {
            "logDriver": "awslogs",
            "options": {
                "awslogs-group": "batch-migrate-log-group",
                "awslogs-region": "us-east-1",
                "awslogs-stream-prefix": "app",
            },
        },
    }
    assert definitions[1]["name"] == "sidecar"
    assert definitions[1]["essential"] is False
    assert "portMappings" not in definitions[1]
    assert "cpu" not in definitions[1]


@pulumi.runtime.test
def test_fargate_single_container_shorthand(mock_tags, mock_vpc_id):
    task_cluster = build_cluster(mock_tags, mock_vpc_id)
    task_definition = build_fargate_task_definition(
        task_cluster,
        OLFargateTaskDefinitionConfig(
            task_def_name="batch-migrate",
            container=OLContainerDefinitionConfig(
                image="mitodl/app", cpu=300, memory=700
            ),
            tags=mock_tags,
        ),
    )

    assert list(task_definition.containers) == ["container"]
    assert task_definition.launch_type == LaunchTypes.fargate
    assert task_definition.network_mode == NetworkMode.awsvpc

    def check_task_definition(args):
        (
            family,
            cpu,
            memory,
            network_mode,
            compatibilities,
            container_definitions,
        ) = args
        assert family == "batch-migrate"
        assert cpu == "512"
        assert memory == "1GB"
        assert network_mode == "awsvpc"
        assert compatibilities == ["FARGATE"]
        definitions = json.loads(container_definitions)
        assert [definition["name"] for definition in definitions] == ["container"]
        assert (
            definitions[0]["logConfiguration"]["options"]["awslogs-group"]
            == "batch-migrate-log-group"
        )

    resource = task_definition.task_definition
    return pulumi.Output.all(
        resource.family,
        resource.cpu,
        resource.memory,
        resource.network_mode,
        resource.requires_compatibilities,
        resource.container_definitions,
    ).apply(check_task_definition)


@pulumi.runtime.test
def test_fargate_requires_a_container(mock_tags, mock_vpc_id):
    task_cluster = build_cluster(mock_tags, mock_vpc_id)
    with pytest.raises(ConfigurationError, match="Either container or containers"):
        build_fargate_task_definition(
            task_cluster,
            OLFargateTaskDefinitionConfig(task_def_name="batch-empty", tags=mock_tags),
        )


@pulumi.runtime.test
def test_empty_container_set_rejected(mock_tags, mock_vpc_id):
    task_cluster = build_cluster(mock_tags, mock_vpc_id)
    with pytest.raises(ConfigurationError, match="At least one container"):
        OLClusterTaskDefinition(
            task_cluster,
            OLClusterTaskDefinitionConfig(
                task_def_name="batch-empty", containers={}, tags=mock_tags
            ),
        )


@pulumi.runtime.test
def test_multiple_load_balanced_containers_rejected(mock_tags, mock_vpc_id):
    task_cluster = build_cluster(mock_tags, mock_vpc_id)
    with pytest.raises(ConfigurationError, match="Only a single container"):
        build_fargate_task_definition(
            task_cluster,
            OLFargateTaskDefinitionConfig(
                task_def_name="batch-web",
                containers={
                    "web": OLContainerDefinitionConfig(
                        image="nginx", load_balancer_port=OLLoadBalancerPort(port=80)
                    ),
                    "api": OLContainerDefinitionConfig(
                        image="api", load_balancer_port=OLLoadBalancerPort(port=8080)
                    ),
                },
                tags=mock_tags,
            ),
        )


@pulumi.runtime.test
def test_explicit_sizing_is_kept(mock_tags, mock_vpc_id):
    task_cluster = build_cluster(mock_tags, mock_vpc_id)
    task_definition = build_fargate_task_definition(
        task_cluster,
        OLFargateTaskDefinitionConfig(
            task_def_name="batch-large",
            container=OLContainerDefinitionConfig(image="mitodl/app", memory=700),
            cpu=2048,
            memory="8GB",
            tags=mock_tags,
        ),
    )

    assert task_definition.sizing.cpu == "2048"
    assert task_definition.sizing.memory == "8GB"


@pulumi.runtime.test
def test_missing_sizing_field_is_computed(mock_tags, mock_vpc_id):
    task_cluster = build_cluster(mock_tags, mock_vpc_id)
    task_definition = build_fargate_task_definition(
        task_cluster,
        OLFargateTaskDefinitionConfig(
            task_def_name="batch-partial",
            container=OLContainerDefinitionConfig(image="mitodl/app", memory=5000),
            cpu=4096,
            tags=mock_tags,
        ),
    )

    assert task_definition.sizing.cpu == "4096"
    assert task_definition.sizing.memory == "5GB"


@pulumi.runtime.test
def test_load_balanced_container_gets_port_mappings(mock_tags, mock_vpc_id):
    task_cluster = build_cluster(mock_tags, mock_vpc_id)
    task_definition = build_fargate_task_definition(
        task_cluster,
        OLFargateTaskDefinitionConfig(
            task_def_name="batch-web",
            containers={
                "web": OLContainerDefinitionConfig(
                    image="nginx",
                    load_balancer_port=OLLoadBalancerPort(port=80, target_port=8080),
                ),
                "worker": OLContainerDefinitionConfig(image="celery"),
            },
            tags=mock_tags,
        ),
    )

    assert task_definition.load_balancer is not None

    def check_port_mappings(args):
        container_definitions, target_type = args
        definitions = {
            definition["name"]: definition
            for definition in json.loads(container_definitions)
        }
        assert definitions["web"]["portMappings"] == [
            {"containerPort": 8080, "protocol": "tcp"}
        ]
        assert "portMappings" not in definitions["worker"]
        assert target_type == "ip"

    return pulumi.Output.all(
        task_definition.task_definition.container_definitions,
        task_definition.load_balancer.target_group.target_type,
    ).apply(check_port_mappings)


@pulumi.runtime.test
def test_provided_log_group_and_roles_are_reused(mock_tags, mock_vpc_id):
    task_cluster = build_cluster(mock_tags, mock_vpc_id)
    log_group = LogGroup("shared-log-group", name="shared-log-group")
    task_role = Role("shared-task-role", assume_role_policy="{}")
    execution_role = Role("shared-execution-role", assume_role_policy="{}")

    task_definition = build_fargate_task_definition(
        task_cluster,
        OLFargateTaskDefinitionConfig(
            task_def_name="batch-shared",
            container=OLContainerDefinitionConfig(image="mitodl/app"),
            log_group=log_group,
            task_role=task_role,
            execution_role=execution_role,
            tags=mock_tags,
        ),
    )

    assert task_definition.log_group is log_group
    assert task_definition.task_role is task_role
    assert task_definition.execution_role is execution_role

    def check_references(args):
        task_role_arn, execution_role_arn, container_definitions = args
        assert task_role_arn.endswith("role/shared-task-role")
        assert execution_role_arn.endswith("role/shared-execution-role")
        options = json.loads(container_definitions)[0]["logConfiguration"]["options"]
        assert options["awslogs-group"] == "shared-log-group"

    resource = task_definition.task_definition
    return pulumi.Output.all(
        resource.task_role_arn,
        resource.execution_role_arn,
        resource.container_definitions,
    ).apply(check_references)


@pulumi.runtime.test
def test_created_roles_named_after_task_definition(mock_tags, mock_vpc_id):
    task_cluster = build_cluster(mock_tags, mock_vpc_id)
    task_definition = build_fargate_task_definition(
        task_cluster,
        OLFargateTaskDefinitionConfig(
            task_def_name="batch-migrate",
            container=OLContainerDefinitionConfig(image="mitodl/app"),
            tags=mock_tags,
        ),
    )

    def check_roles(args):
        task_role_arn, execution_role_arn = args
        assert task_role_arn.endswith("role/batch-migrate-task-role")
        assert execution_role_arn.endswith("role/batch-migrate-execution-role")

    return pulumi.Output.all(
        task_definition.task_definition.task_role_arn,
        task_definition.task_definition.execution_role_arn,
    ).apply(check_roles)


@pulumi.runtime.test
def test_ec2_task_definition(mock_tags, mock_vpc_id):
    task_cluster = build_cluster(mock_tags, mock_vpc_id)
    task_definition = build_ec2_task_definition(
        task_cluster,
        OLClusterTaskDefinitionConfig(
            task_def_name="batch-host",
            containers={
                "app": OLContainerDefinitionConfig(image="mitodl/app", memory=256)
            },
            network_mode=NetworkMode.bridge,
            requires_compatibilities=[LaunchTypes.fargate],
            launch_type=LaunchTypes.fargate,
            tags=mock_tags,
        ),
    )

    assert task_definition.launch_type == LaunchTypes.ec2
    assert task_definition.network_mode == NetworkMode.bridge

    def check_compatibilities(args):
        compatibilities, network_mode = args
        assert compatibilities == ["EC2"]
        assert network_mode == "bridge"

    return pulumi.Output.all(
        task_definition.task_definition.requires_compatibilities,
        task_definition.task_definition.network_mode,
    ).apply(check_compatibilities)


@pulumi.runtime.test
def test_launch_type_must_be_compatible(mock_tags, mock_vpc_id):
    task_cluster = build_cluster(mock_tags, mock_vpc_id)
    with pytest.raises(ConfigurationError, match="not one of the required"):
        OLClusterTaskDefinition(
            task_cluster,
            OLClusterTaskDefinitionConfig(
                task_def_name="batch-host",
                containers={"app": OLContainerDefinitionConfig(image="mitodl/app")},
                requires_compatibilities=[LaunchTypes.ec2],
                launch_type=LaunchTypes.fargate,
                tags=mock_tags,
            ),
        )


@pulumi.runtime.test
def test_run_is_bound_to_launcher(mock_tags, mock_vpc_id):
    task_cluster = build_cluster(mock_tags, mock_vpc_id)
    task_definition = build_fargate_task_definition(
        task_cluster,
        OLFargateTaskDefinitionConfig(
            task_def_name="batch-migrate",
            containers={
                "app": OLContainerDefinitionConfig(image="mitodl/app"),
                "sidecar": OLContainerDefinitionConfig(image="fluentbit"),
            },
            tags=mock_tags,
        ),
    )

    launcher = task_definition.launcher
    assert task_definition.run == launcher.run
    assert launcher.cluster_name == "batch-qa"
    assert launcher.family == "batch-migrate"
    assert launcher.launch_type == LaunchTypes.fargate
    assert list(launcher.containers) == ["app", "sidecar"]
