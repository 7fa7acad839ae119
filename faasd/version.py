"""Version information and shared constants."""

# Set at release time.
GIT_COMMIT = ""
VERSION = ""

# Default containerd namespace in which functions are created.
DEFAULT_FUNCTION_NAMESPACE = "openfaas-fn"

# Label marking a namespace as managed by faasd.
NAMESPACE_LABEL = "openfaas"

# Containerd namespace in which core services are created.
FAASD_NAMESPACE = "openfaas"

FAAS_SERVICES_PULL_ALWAYS = False

DEFAULT_SNAPSHOTTER = "overlayfs"


def get_version() -> str:
    """Return the release version, or "dev" when none was set."""
    return VERSION or "dev"