"""Helper functions for looking up EC2 networking resources at call time."""

import logging
from functools import lru_cache
from typing import Any

import boto3

log = logging.getLogger(__name__)


@lru_cache
def aws_regions() -> list[str]:
    """Generate the list of regions in which ECS is available.

    This reads the endpoint data bundled with botocore, so it does not make any API
    calls.

    :returns: List of AWS region names

    :rtype: List[str]
    """
    return boto3.session.Session().get_available_regions("ecs")


def subnet_ids_for_vpc(ec2_client: Any, vpc_id: str, *, public: bool) -> list[str]:
    """Look up the current public or private subnets of a VPC.

    Subnets are classified by whether they auto-assign public IP addresses on launch.

    :param ec2_client: A boto3 EC2 client
    :param vpc_id: The VPC to search
    :type vpc_id: str
    :param public: Return the public subnets when true, the private ones otherwise
    :type public: bool

    :returns: Sorted list of subnet IDs

    :rtype: List[str]
    """
    paginator = ec2_client.get_paginator("describe_subnets")
    filters = [
        {"Name": "vpc-id", "Values": [vpc_id]},
        {
            "Name": "map-public-ip-on-launch",
            "Values": ["true" if public else "false"],
        },
    ]
    subnet_ids = sorted(
        subnet["SubnetId"]
        for page in paginator.paginate(Filters=filters)
        for subnet in page["Subnets"]
    )
    log.debug("Found subnets %s in VPC %s (public=%s)", subnet_ids, vpc_id, public)
    return subnet_ids


def security_group_ids_by_name(
    ec2_client: Any, vpc_id: str, group_name: str
) -> list[str]:
    response = ec2_client.describe_security_groups(
        Filters=[
            {"Name": "vpc-id", "Values": [vpc_id]},
            {"Name": "group-name", "Values": [group_name]},
        ]
    )
    return [group["GroupId"] for group in response["SecurityGroups"]]
