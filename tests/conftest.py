"""Shared pytest fixtures for ECS task definition tests.

Resources created during tests use mocked responses instead of making actual API
calls. Mocks are reset before every test so that one module's resources never leak
into another's.
"""

import asyncio
import os

# Set AWS environment variables before creating any boto3 clients
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
# pragma: allowlist secret
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"  # noqa: S105

import pulumi  # noqa: E402
import pytest  # noqa: E402

ACCOUNT_ID = "123456789012"
MOCK_PROJECT = "ol-ecs-tasks"
MOCK_STACK = "applications.batch_tasks.QA"
SUBNET_IDS = ["subnet-11111111", "subnet-22222222", "subnet-33333333"]


class ECSTaskMocks(pulumi.runtime.Mocks):
    """Mock implementation for ECS task definition resources."""

    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        """Mock resource creation.

        Echo the inputs back, adding the computed attributes that the components
        read from their children.
        """
        outputs = {**args.inputs}

        if args.typ == "aws:iam/role:Role":
            outputs.setdefault("name", args.name)
            outputs["arn"] = f"arn:aws:iam::{ACCOUNT_ID}:role/{outputs['name']}"
        elif args.typ == "aws:cloudwatch/logGroup:LogGroup":
            outputs.setdefault("name", args.name)
            outputs["arn"] = (
                f"arn:aws:logs:us-east-1:{ACCOUNT_ID}:log-group:{outputs['name']}"
            )
        elif args.typ == "aws:ecs/cluster:Cluster":
            outputs["arn"] = (
                f"arn:aws:ecs:us-east-1:{ACCOUNT_ID}:cluster/{outputs.get('name')}"
            )
        elif args.typ == "aws:ecs/taskDefinition:TaskDefinition":
            outputs["revision"] = 1
            outputs["arn"] = (
                f"arn:aws:ecs:us-east-1:{ACCOUNT_ID}:task-definition/"
                f"{args.inputs['family']}:1"
            )
        elif args.typ == "aws:lb/loadBalancer:LoadBalancer":
            outputs["arn"] = (
                f"arn:aws:elasticloadbalancing:us-east-1:{ACCOUNT_ID}:"
                f"loadbalancer/app/{args.name}/50dc6c495c0c9188"
            )
            outputs["dnsName"] = f"{args.name}.us-east-1.elb.amazonaws.com"
        elif args.typ == "aws:lb/targetGroup:TargetGroup":
            outputs["arn"] = (
                f"arn:aws:elasticloadbalancing:us-east-1:{ACCOUNT_ID}:"
                f"targetgroup/{args.name}/50dc6c495c0c9188"
            )
        elif args.typ == "aws:lb/listener:Listener":
            outputs["arn"] = (
                f"arn:aws:elasticloadbalancing:us-east-1:{ACCOUNT_ID}:"
                f"listener/app/{args.name}/50dc6c495c0c9188/f2f7dc8efc522ab2"
            )

        return [f"{args.name}_id", outputs]

    def call(self, args: pulumi.runtime.MockCallArgs):
        """Mock data source calls."""
        if args.token == "aws:ec2/getSubnets:getSubnets":  # noqa: S105
            return {"id": "us-east-1", "ids": SUBNET_IDS}
        return {}


@pytest.fixture(autouse=True)
def ecs_task_mocks():
    """Set up fresh Pulumi mocks before each test."""
    # Python 3.14+ compatibility: ensure event loop exists for set_mocks()
    try:
        asyncio.get_event_loop()
    except RuntimeError:
        asyncio.set_event_loop(asyncio.new_event_loop())

    mocks = ECSTaskMocks()
    pulumi.runtime.set_mocks(mocks, project=MOCK_PROJECT, stack=MOCK_STACK)
    return mocks


@pytest.fixture
def mock_tags():
    """Return standard tags for test resources.

    Returns:
        dict: Dictionary of common resource tags.
    """
    return {"OU": "operations", "Environment": "applications-qa"}


@pytest.fixture
def mock_vpc_id():
    return "vpc-12345678"


@pytest.fixture
def mock_subnet_ids():
    return list(SUBNET_IDS)


@pytest.fixture
def mock_security_group_id():
    return "sg-12345678"
