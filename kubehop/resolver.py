"""
Service/environment resolution for Kubehop.

This module turns a tabular pod listing into a ServiceIndex: a mapping from
logical service name to environment to the pod instance serving it. It is the
only part of Kubehop with real decision logic; everything else feeds it text
or consumes its result.

Naming convention of a pod name:

    [<env>-][<namespace>-]<logical-name>-<replica-set-hash>-<suffix>

- <env> is one of dev, qa, stg, prod; absent means the "default" environment
- the last two dash-separated segments form the instance id
- everything before the instance id is the full service name

Key Functions:
- parse_pod_listing: Split listing text into PodRecords using the header row
- classify_environment: Map a pod name to its EnvironmentTag
- split_pod_name: Separate full service name from the instance id
- logical_service_name: Strip environment and namespace prefixes
- resolve: Build a ServiceIndex from listing text
- resolve_records: Build a ServiceIndex from already parsed records

Rows that are not Running, or whose names have fewer than three segments, are
skipped silently. Every call builds a fresh read-only index.

Example:
    ```python
    listing = "NAMESPACE  NAME                    STATUS\\n" \\
              "payments   dev-billing-abc12-99zz  Running\\n"
    index = resolve(listing)
    index["billing"][EnvironmentTag.DEV].target  # "dev-billing-abc12-99zz"
    ```
"""

import logging
from types import MappingProxyType
from typing import Dict, Iterable, List, Optional, Tuple

from .constants import (
    COLUMN_NAME, COLUMN_NAMESPACE, COLUMN_STATUS, RUNNING_STATUS,
    NAME_SEPARATOR, INSTANCE_ID_SEGMENTS, MIN_POD_NAME_SEGMENTS
)
from .exceptions import ListingFormatError
from .models import (
    PodRecord, EnvironmentTag, ENVIRONMENT_ORDER, InstanceDescriptor, ServiceIndex
)

log = logging.getLogger('kubehop')


def _cell(columns: List[str], index: int) -> Optional[str]:
    if index < 0 or index >= len(columns):
        return None
    return columns[index]


def parse_pod_listing(text: str) -> List[PodRecord]:
    """
    Parse tabular pod listing text into records.

    The first non-blank line is the header; columns are located by position.
    NAME is required, NAMESPACE and STATUS are optional. A record's namespace or
    status is None when the listing has no such column or the row is too short
    to reach it; such rows are not filtered on status. Rows without a NAME cell
    are dropped.

    Args:
        text: Listing text as printed by `kubectl get pods`

    Returns:
        List[PodRecord]: One record per data row, in listing order

    Raises:
        ListingFormatError: If the header row has no NAME column
    """
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if not lines:
        return []

    headers = lines[0].split()
    if COLUMN_NAME not in headers:
        raise ListingFormatError(f"Pod listing header has no {COLUMN_NAME} column: {lines[0]!r}")
    name_idx = headers.index(COLUMN_NAME)
    ns_idx = headers.index(COLUMN_NAMESPACE) if COLUMN_NAMESPACE in headers else -1
    status_idx = headers.index(COLUMN_STATUS) if COLUMN_STATUS in headers else -1

    records = []
    for line in lines[1:]:
        columns = line.split()
        name = _cell(columns, name_idx)
        if not name:
            continue
        records.append(PodRecord(name=name, namespace=_cell(columns, ns_idx), status=_cell(columns, status_idx)))
    return records


def classify_environment(pod_name: str) -> EnvironmentTag:
    """Return the environment whose prefix starts pod_name, DEFAULT if none does."""
    for env in ENVIRONMENT_ORDER:
        if env.prefix and pod_name.startswith(env.prefix):
            return env
    return EnvironmentTag.DEFAULT


def strip_prefix(value: str, prefix: str) -> str:
    """Remove prefix from the front of value once, if present."""
    if prefix and value.startswith(prefix):
        return value[len(prefix):]
    return value


def split_pod_name(pod_name: str) -> Optional[Tuple[str, str]]:
    """
    Split a pod name into (full service name, instance id).

    Returns None when the name has fewer than three dash-separated segments.

    Example:
        ```python
        split_pod_name("teamA-orders-7f9c8-x2k1")  # ("teamA-orders", "7f9c8-x2k1")
        split_pod_name("coredns-abc")  # None
        ```
    """
    parts = pod_name.split(NAME_SEPARATOR)
    if len(parts) < MIN_POD_NAME_SEGMENTS:
        return None
    service_name = NAME_SEPARATOR.join(parts[:-INSTANCE_ID_SEGMENTS])
    instance_id = NAME_SEPARATOR.join(parts[-INSTANCE_ID_SEGMENTS:])
    return service_name, instance_id


def logical_service_name(service_name: str, namespace: Optional[str]) -> str:
    """Strip the environment prefix, then the "<namespace>-" prefix, from a full service name."""
    env = classify_environment(service_name)
    short = strip_prefix(service_name, env.prefix or "")
    if namespace:
        short = strip_prefix(short, f"{namespace}{NAME_SEPARATOR}")
    return short


def resolve_records(records: Iterable[PodRecord], namespace_filter: Optional[str] = None) -> ServiceIndex:
    """
    Build a ServiceIndex from parsed pod records.

    When namespace_filter is given, every record is treated as belonging to it
    regardless of its own namespace. When two records land on the same
    (logical name, environment) pair, the later one wins.

    Args:
        records: Pod records in listing order
        namespace_filter: Namespace the listing was scoped to, or None

    Returns:
        ServiceIndex: Read-only mapping of logical name -> environment -> instance
    """
    services: Dict[str, Dict[EnvironmentTag, InstanceDescriptor]] = {}

    for record in records:
        if record.status is not None and record.status != RUNNING_STATUS:
            log.debug(f"[resolve] skip {record.name}: status={record.status!r}")
            continue

        namespace = namespace_filter if namespace_filter is not None else record.namespace
        env = classify_environment(record.name)

        split = split_pod_name(record.name)
        if split is None:
            log.debug(f"[resolve] skip {record.name}: not <service>-<hash>-<suffix>")
            continue
        service_name, instance_id = split

        short_name = logical_service_name(service_name, namespace)
        descriptor = InstanceDescriptor(id=instance_id, namespace=namespace or "", service_name=service_name)

        envs = services.setdefault(short_name, {})
        previous = envs.get(env)
        if previous is not None:
            log.debug(f"[resolve] {short_name}/{env.value}: {previous.target} replaced by {descriptor.target}")
        envs[env] = descriptor

    return MappingProxyType({name: MappingProxyType(envs) for name, envs in services.items()})


def resolve(pod_listing_text: str, namespace_filter: Optional[str] = None) -> ServiceIndex:
    """
    Resolve pod listing text into a ServiceIndex.

    Args:
        pod_listing_text: Header row plus whitespace-delimited data rows
        namespace_filter: Namespace the listing was scoped to, or None to use
            each row's NAMESPACE column

    Returns:
        ServiceIndex: Read-only mapping of logical name -> environment -> instance

    Raises:
        ListingFormatError: If the header row has no NAME column

    Example:
        ```python
        index = resolve("NAME\\nteamA-orders-7f9c8-x2k1\\n", "teamA")
        index["orders"][EnvironmentTag.DEFAULT]
        # InstanceDescriptor(id='7f9c8-x2k1', namespace='teamA', service_name='teamA-orders')
        ```
    """
    return resolve_records(parse_pod_listing(pod_listing_text), namespace_filter)


def sorted_services(index: ServiceIndex) -> List[str]:
    """Logical service names in display order."""
    return sorted(index)


def environments_for(index: ServiceIndex, service: str) -> List[EnvironmentTag]:
    """Environments available for a service, ordered dev, qa, stg, prod, default."""
    envs = index.get(service) or {}
    return [env for env in ENVIRONMENT_ORDER if env in envs]


def index_to_dict(index: ServiceIndex) -> Dict[str, Dict[str, Dict[str, str]]]:
    """Plain, JSON-serializable copy of a ServiceIndex."""
    return {
        name: {env.value: descriptor.to_dict() for env, descriptor in index[name].items()}
        for name in sorted_services(index)
    }
