"""TopoHound constants and lookup tables.

Centralizes the resource-type tables and magic values shared by the
normalizer, the emitter and the driver.
"""

# Open-world CIDR given wildcard-closure handling during reconciliation
SENTINEL_CIDR = "0.0.0.0/0"

# Only the primary network interface is tracked for instance placement
PRIMARY_DEVICE_INDEX = 0

# Root element of every module path
ROOT_MODULE = "root"

# Reference prefixes that name something other than a resource
ALIAS_PREFIXES = ("var", "local", "self", "count", "path", "each", "terraform")

# Selector trimmed from resource references ("aws_vpc.main.id" -> "aws_vpc.main")
ID_SELECTOR = ".id"

# Resource limits
DEFAULT_MAX_RESOURCES = 10000

# Output formats understood by the bundle writer
OUTPUT_FORMATS = ("records", "cytoscape")

# Node attribute holding a subnet's CIDR block
CIDR_ATTRIBUTE = "CidrBlock"

# Terraform resource type -> resource kind value (see resources.ResourceKind)
RESOURCE_KINDS = {
    "aws_vpc": "network",
    "aws_subnet": "subnet",
    "aws_instance": "compute",
    "aws_network_interface": "interface",
    "aws_security_group": "security_group",
    "aws_elb": "multi_container",
    "aws_lb": "multi_container",
    "aws_alb": "multi_container",
}

# Among resources whose dependencies are satisfied, lower ranks run first
KIND_SCHEDULE = {
    "network": 0,
    "subnet": 1,
    "security_group": 2,
    "interface": 3,
    "compute": 4,
    "multi_container": 5,
}
