import hashlib
from typing import Any

from pulumi_aws.iam import ManagedPolicy

from ol_ecs_tasks.lib.magic_numbers import POLICY_HASH_LENGTH

IAM_POLICY_VERSION = "2012-10-17"
ECS_TASKS_SERVICE_PRINCIPAL = "ecs-tasks.amazonaws.com"

# Attached to every task role created on behalf of a caller. Pass a task role to
# scope a task down.
DEFAULT_TASK_ROLE_POLICY_ARNS: tuple[str, ...] = (
    # Access to "serverless" services (DynamoDB, S3, Lambda, etc.)
    "arn:aws:iam::aws:policy/AWSLambda_FullAccess",
    # Lets code running in the task start other ECS tasks
    "arn:aws:iam::aws:policy/AmazonECS_FullAccess",
)
DEFAULT_EXECUTION_ROLE_POLICY_ARNS: tuple[str, ...] = (
    ManagedPolicy.AMAZON_ECS_TASK_EXECUTION_ROLE_POLICY.value,
)


def ecs_tasks_trust_policy() -> dict[str, Any]:
    """Trust policy that lets ECS tasks assume a role.

    :returns: A dictionary object representing an assume role policy document for the
              ECS tasks service principal.
    """
    return {
        "Version": IAM_POLICY_VERSION,
        "Statement": [
            {
                "Sid": "",
                "Effect": "Allow",
                "Principal": {"Service": ECS_TASKS_SERVICE_PRINCIPAL},
                "Action": "sts:AssumeRole",
            }
        ],
    }


def policy_attachment_suffix(policy_arn: str) -> str:
    """Short, stable identifier for a policy ARN to use in resource names."""
    return hashlib.sha1(policy_arn.encode()).hexdigest()[:POLICY_HASH_LENGTH]  # noqa: S324
