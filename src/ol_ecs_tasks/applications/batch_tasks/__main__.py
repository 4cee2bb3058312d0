"""
Pulumi stack to deploy one-off batch task definitions into an ECS cluster.

This stack:
1. Creates (or adopts) the ECS cluster and the security group for its tasks
2. Registers a Fargate task definition for every task listed in the stack config
3. Exports the family names so tasks can be launched with OLTaskLauncher
"""

from pulumi import Config, export, log

from ol_ecs_tasks.components.aws.cluster_task_definition import (
    build_fargate_task_definition,
)
from ol_ecs_tasks.components.aws.task_cluster import OLTaskCluster, OLTaskClusterConfig
from ol_ecs_tasks.lib.aws.ecs.container_definition_config import (
    OLContainerDefinitionConfig,
)
from ol_ecs_tasks.lib.aws.ecs.task_definition_config import (
    OLFargateTaskDefinitionConfig,
)
from ol_ecs_tasks.lib.ol_types import AWSBase, BusinessUnit
from ol_ecs_tasks.lib.pulumi_helper import parse_stack

stack_info = parse_stack()
log.info(f"{stack_info=}")

batch_config = Config("batch_tasks")
aws_region = Config("aws").get("region") or "us-east-1"

aws_config = AWSBase(
    tags={
        "OU": batch_config.get("business_unit") or BusinessUnit.operations.value,
        "Environment": f"{stack_info.env_prefix}-{stack_info.env_suffix}",
    },
    region=aws_region,
)

cluster_name = f"{stack_info.env_prefix}-{stack_info.env_suffix}".replace("_", "-")
task_cluster = OLTaskCluster(
    OLTaskClusterConfig(
        cluster_name=cluster_name,
        vpc_id=batch_config.require("vpc_id"),
        security_group_name=f"{cluster_name}-tasks",
        use_private_subnets=batch_config.get_bool("use_private_subnets") or False,
        tags=aws_config.tags,
        region=aws_config.region,
    )
)

# Each entry looks like:
#   migrate:
#     image: mitodl/app:latest
#     command: ["./manage.py", "migrate"]
#     memory_reservation: 1024
#     environment: {DJANGO_SETTINGS_MODULE: app.settings}
task_families = {}
for task_name, task_settings in (batch_config.get_object("tasks") or {}).items():
    task_definition = build_fargate_task_definition(
        task_cluster,
        OLFargateTaskDefinitionConfig(
            task_def_name=stack_info.task_family(task_name),
            container=OLContainerDefinitionConfig(**task_settings),
            tags=aws_config.merged_tags({"Application": task_name}),
            region=aws_config.region,
        ),
    )
    task_families[task_name] = task_definition.task_definition.family

export("cluster_name", cluster_name)
export("task_families", task_families)
