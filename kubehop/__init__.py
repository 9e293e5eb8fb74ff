"""
Kubehop - Pick a Kubernetes workload by service and environment, then tunnel to it.

Kubehop reads the pods running in a cluster, groups them into logical services
by stripping environment and namespace prefixes from pod names, and lets the
operator pick one service and one environment instead of a raw pod name. It then
opens a local port-forward to the chosen pod and can follow its logs.

Key Features:
- Service/environment resolution from pod listings (dev, qa, stg, prod, default)
- Interactive terminal session (namespace -> service -> environment -> ports)
- Service port detection with a configurable fallback port
- Port-forward tunnels and live log streaming
- JSON HTTP surface exposing the same steps

Example:
    Interactive session:
    ```bash
    kubehop connect
    ```

    Print the resolved services of one namespace:
    ```bash
    kubehop services --namespace payments
    ```

    Serve the HTTP API:
    ```bash
    kubehop serve --port 8080
    ```
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
