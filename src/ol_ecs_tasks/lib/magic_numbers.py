"""
Module of meaningful integer values.

This module consists of constants that are used to provide meaningful representations of
integer values used when sizing and launching ECS tasks.
"""

AWS_LOAD_BALANCER_NAME_MAX_LENGTH = 32
AWS_TARGET_GROUP_NAME_MAX_LENGTH = 32
DEFAULT_LOG_RETENTION_DAYS = 1
ECS_STARTED_BY_MAX_LENGTH = 36
HALF_GIGABYTE_MB = 512
MAXIMUM_PORT_NUMBER = 65535
MINIMUM_FARGATE_CPU_UNITS = 256
ONE_GIGABYTE_MB = 1024
POLICY_HASH_LENGTH = 8

# (memory threshold in MiB, minimum cpu units) pairs, checked from largest to smallest.
# A task with more memory than the threshold needs at least that many cpu units.
FARGATE_CPU_FLOOR_BY_MEMORY = (
    (16384, 4096),
    (8192, 2048),
    (4096, 1024),
    (2048, 512),
)
