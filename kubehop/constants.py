"""
Constants and configuration for Kubehop.

This module contains the configuration constants used throughout the Kubehop
application, including naming conventions for pod names, listing column names,
default ports and environment variable names.

Constants are organized by category:
- Pod listing: Column headers of the tabular pod listing
- Naming conventions: Environment prefixes and instance suffix layout
- Ports: Default local/remote ports
- Logging: Default log levels
- Server defaults: Default host and port for the HTTP surface
- Environment variables: Names of the variables read at startup
"""

# Pod listing columns
COLUMN_NAME = "NAME"
COLUMN_NAMESPACE = "NAMESPACE"
COLUMN_STATUS = "STATUS"
RUNNING_STATUS = "Running"
TERMINATING_STATUS = "Terminating"

# Naming conventions
NAME_SEPARATOR = "-"
INSTANCE_ID_SEGMENTS = 2  # replica-set hash + random suffix
MIN_POD_NAME_SEGMENTS = INSTANCE_ID_SEGMENTS + 1

# Session prompts
ALL_NAMESPACES_LABEL = "-- All Namespaces --"

# Ports
DEFAULT_LOCAL_PORT = 3000
DEFAULT_REMOTE_PORT = 3000
MIN_PORT = 1
MAX_PORT = 65535

# kubectl
DEFAULT_KUBECTL = "kubectl"
LOG_TAIL_LINES = 200

# Logging
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_UVICORN_LOG_LEVEL = "info"

# Server defaults
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8080

# Environment variables
ENV_LOG_LEVEL = "KUBEHOP_LOG_LEVEL"
ENV_DEFAULT_PORT = "KUBEHOP_DEFAULT_PORT"
ENV_KUBECTL = "KUBEHOP_KUBECTL"
ENV_HOST = "KUBEHOP_HOST"
ENV_PORT = "KUBEHOP_PORT"
ENV_UVICORN_LEVEL = "KUBEHOP_UVICORN_LEVEL"
