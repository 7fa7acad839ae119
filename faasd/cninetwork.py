"""CNI network configuration and lookups of container IP addresses."""

from __future__ import annotations

import ipaddress
import logging
import os
import posixpath

logger = logging.getLogger(__name__)

# Directory holding the CNI plugin binaries.
CNI_BIN_DIR = "/opt/cni/bin"

# Directory holding the CNI plugin configuration.
CNI_CONF_DIR = "/etc/cni/net.d"

# Path of a process's network namespace, given its pid.
NET_NS_PATH_FMT = "/proc/%d/ns/net"

# Directory in which CNI stores the IPs allocated to containers.
CNI_DATA_DIR = "/var/run/cni"

DEFAULT_CNI_CONF_FILENAME = "10-openfaas.conflist"

# Name of the bridge-style plugin chain; it shows up in iptables comments.
DEFAULT_NETWORK_NAME = "openfaas-cni-bridge"

DEFAULT_BRIDGE_NAME = "openfaas0"

# Chosen so as not to collide with common container networking subnets.
DEFAULT_SUBNET = "10.62.0.0/16"

# Prefix of the interface created inside the container.
DEFAULT_IF_PREFIX = "eth"

_CNI_CONF_TEMPLATE = """
{
    "cniVersion": "0.4.0",
    "name": "%s",
    "plugins": [
      {
        "type": "bridge",
        "bridge": "%s",
        "isGateway": true,
        "ipMasq": true,
        "ipam": {
            "type": "host-local",
            "subnet": "%s",
            "dataDir": "%s",
            "routes": [
                { "dst": "0.0.0.0/0" }
            ]
        }
      },
      {
        "type": "firewall"
      }
    ]
}
"""


def default_cni_conf() -> str:
    """Return the bridge-style CNI configuration list as JSON text."""
    return _CNI_CONF_TEMPLATE % (
        DEFAULT_NETWORK_NAME,
        DEFAULT_BRIDGE_NAME,
        DEFAULT_SUBNET,
        CNI_DATA_DIR,
    )


def write_network_config(conf_dir: str = CNI_CONF_DIR) -> str:
    """Write the default CNI configuration into conf_dir and return its path."""
    logger.info("Writing network config...")
    if not dir_exists(conf_dir):
        try:
            os.makedirs(conf_dir, mode=0o755, exist_ok=True)
        except OSError as exc:
            raise OSError(f"cannot create directory: {conf_dir}") from exc

    path = os.path.join(conf_dir, DEFAULT_CNI_CONF_FILENAME)
    try:
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(default_cni_conf())
        os.chmod(path, 0o644)
    except OSError as exc:
        raise OSError(f"cannot write network config: {DEFAULT_CNI_CONF_FILENAME}") from exc
    return path


def cni_gateway(subnet: str = DEFAULT_SUBNET) -> str:
    """Return the gateway address (last octet 1) of an IPv4 subnet."""
    try:
        address = ipaddress.ip_interface(subnet).ip
    except ValueError as exc:
        raise ValueError(f"error formatting gateway for network {subnet}") from exc
    if not isinstance(address, ipaddress.IPv4Address):
        raise ValueError(f"error formatting gateway for network {subnet}")
    octets = bytearray(address.packed)
    octets[3] = 1
    return str(ipaddress.IPv4Address(bytes(octets)))


def is_cni_result_for_pid(file_name: str, container: str, pid: int) -> bool:
    """Return True if a CNI result file names the container, pid and interface.

    The file's first line holds ``<container>-<pid>`` and its second line
    the interface name.
    """
    try:
        with open(file_name, encoding="utf-8", errors="replace") as handle:
            process_line = handle.readline()
            if f"{container}-{pid}" not in process_line:
                return False
            eth_name_line = handle.readline()
    except OSError as exc:
        raise OSError(f"failed to open CNI IP file for {file_name}: {exc}") from exc
    return DEFAULT_IF_PREFIX in eth_name_line


def get_ip_address(container: str, pid: int, data_dir: str = CNI_DATA_DIR) -> str:
    """Return the IP address CNI allocated to a container's task.

    Raises OSError if the CNI data directory cannot be read and LookupError
    if no allocation matches.
    """
    cni_dir = os.path.join(data_dir, DEFAULT_NETWORK_NAME)
    try:
        names = sorted(os.listdir(cni_dir))
    except OSError as exc:
        raise OSError(f"failed to read CNI dir for container {container}: {exc}") from exc

    # Each file is named after the IP address it records.
    for name in names:
        results_file = os.path.join(cni_dir, name)
        if os.path.isdir(results_file):
            continue
        if is_cni_result_for_pid(results_file, container, pid):
            return name

    raise LookupError(f"unable to get IP address for container: {container}")


def net_id(task_id: str, pid: int) -> str:
    """Return the CNI network id for a task."""
    return f"{task_id}-{pid}"


def net_namespace(pid: int) -> str:
    """Return the network namespace path for a process."""
    return NET_NS_PATH_FMT % pid


def ns_path_by_pid(pid: int) -> str:
    """Return the network namespace path of a process under the root filesystem."""
    return ns_path_by_pid_with_root("/", pid)


def ns_path_by_pid_with_root(root: str, pid: int) -> str:
    """Return the network namespace path of a process under root."""
    return posixpath.normpath(posixpath.join(root, f"proc/{pid}/ns/net"))


def dir_exists(path: str) -> bool:
    """Return True if path exists and is a directory."""
    return os.path.isdir(path)


def dir_empty(path: str) -> bool:
    """Return True if path is an existing directory with no entries."""
    if not dir_exists(path):
        return False
    try:
        with os.scandir(path) as entries:
            return next(entries, None) is None
    except OSError:
        return False