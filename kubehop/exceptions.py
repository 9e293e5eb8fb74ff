"""
Custom exceptions for Kubehop.

This module defines custom exception classes used throughout the Kubehop
application to provide more specific error handling and better error messages
for the different failure scenarios of a session.

Exception Hierarchy:
- KubehopError: Base exception for all Kubehop-specific errors
  - KubernetesConnectionError: Raised when unable to load cluster configuration
  - ClusterQueryError: Raised when a read-only cluster query fails
  - ListingFormatError: Raised when a pod listing has no usable header row
  - ServiceNotFoundError: Raised when a service/environment is not in the index
  - ConfigurationError: Raised when there's a configuration issue
  - SessionCancelled: Raised when the user aborts a prompt
  - TunnelError: Raised when a tunnel or log process cannot be started

Example:
    ```python
    try:
        index = resolve(listing_text)
    except ListingFormatError as e:
        print(f"Unexpected listing: {e}")
    ```
"""


class KubehopError(Exception):
    """Base exception for Kubehop errors."""
    pass


class KubernetesConnectionError(KubehopError):
    """Raised when unable to load Kubernetes configuration."""
    pass


class ClusterQueryError(KubehopError):
    """Raised when a cluster query fails upstream."""
    pass


class ListingFormatError(KubehopError):
    """Raised when a pod listing header lacks the NAME column."""
    pass


class ServiceNotFoundError(KubehopError):
    """Raised when a service or environment is missing from the service index."""
    pass


class ConfigurationError(KubehopError):
    """Raised when there's a configuration issue."""
    pass


class SessionCancelled(KubehopError):
    """Raised when the user aborts a session prompt."""
    pass


class TunnelError(KubehopError):
    """Raised when a port-forward or log process cannot be started."""
    pass
