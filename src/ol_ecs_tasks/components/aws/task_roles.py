"""Pulumi component resource that supplies the IAM roles used by an ECS task.

Every task definition needs two roles:

- a task role, assumed by the code running in the containers
- an execution role, assumed by the ECS agent to pull images and ship logs

Roles passed in by the caller are used as-is. Anything missing is created with the
ECS tasks trust policy and a fixed set of managed policies. Roles are named after the
task definition they belong to, so each task definition owns its own pair.
"""

import json

import pulumi
from pulumi_aws.iam import Role, RolePolicyAttachment
from pydantic import ConfigDict

from ol_ecs_tasks.lib.aws.iam_helper import (
    DEFAULT_EXECUTION_ROLE_POLICY_ARNS,
    DEFAULT_TASK_ROLE_POLICY_ARNS,
    ecs_tasks_trust_policy,
    policy_attachment_suffix,
)
from ol_ecs_tasks.lib.errors import provisioning_errors
from ol_ecs_tasks.lib.ol_types import AWSBase


class OLECSTaskRolesConfig(AWSBase):
    # Prefix for every created resource. Normally the task definition family name
    role_name_prefix: str
    task_role: Role | None = None
    execution_role: Role | None = None
    model_config = ConfigDict(arbitrary_types_allowed=True)


class OLECSTaskRoles(pulumi.ComponentResource):
    def __init__(
        self,
        config: OLECSTaskRolesConfig,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__(
            "ol:ecs_tasks:aws:iam:OLECSTaskRoles",
            f"{config.role_name_prefix}-roles",
            None,
            opts,
        )

        self.resource_options = pulumi.ResourceOptions(parent=self).merge(opts)

        if config.task_role:
            pulumi.log.debug("using task role provided by caller")
            self.task_role = config.task_role
        else:
            self.task_role = self.create_role(
                config, "task", DEFAULT_TASK_ROLE_POLICY_ARNS
            )

        if config.execution_role:
            pulumi.log.debug("using execution role provided by caller")
            self.execution_role = config.execution_role
        else:
            self.execution_role = self.create_role(
                config, "execution", DEFAULT_EXECUTION_ROLE_POLICY_ARNS
            )

        self.register_outputs(
            {
                "task_role_arn": self.task_role.arn,
                "execution_role_arn": self.execution_role.arn,
            }
        )

    def create_role(
        self,
        config: OLECSTaskRolesConfig,
        role_kind: str,
        policy_arns: tuple[str, ...],
    ) -> Role:
        """Create a role that ECS tasks can assume and attach managed policies to it.

        :param config: Configuration object for the task roles
        :type config: OLECSTaskRolesConfig

        :param role_kind: Either "task" or "execution". Used in resource names
        :type role_kind: str

        :param policy_arns: The managed policies to attach to the new role
        :type policy_arns: Tuple[str, ...]

        :raises PlatformProvisioningError: If the role or one of its policy attachments
            can not be created

        :returns: The newly created role

        :rtype: Role
        """
        resource_prefix = f"{config.role_name_prefix}-{role_kind}"
        pulumi.log.debug(
            f"creating {role_kind} role {resource_prefix} with policies {policy_arns}"
        )

        # Only input and registration errors surface here. AWS create failures are
        # reported by the engine after the constructor returns
        with provisioning_errors(f"{role_kind} role for {config.role_name_prefix}"):
            role = Role(
                f"{resource_prefix}-role",
                assume_role_policy=json.dumps(ecs_tasks_trust_policy()),
                tags=config.tags,
                opts=self.resource_options,
            )
            for policy_arn in policy_arns:
                RolePolicyAttachment(
                    f"{resource_prefix}-{policy_attachment_suffix(policy_arn)}",
                    role=role.name,
                    policy_arn=policy_arn,
                    opts=self.resource_options,
                )

        return role
