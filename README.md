# faasd

Tools for running serverless functions on a single Linux host: loading the
compose file that describes the core services and working out their start-up
order, forwarding published ports to those services, reading logs from the
systemd journal, installing the systemd units, and HTTP handlers for the
provider's secrets, namespaces and system-information endpoints.

## Installation

```
pip install .
```

Python 3.10 or later is required. The commands expect a Linux host with
`systemd` and `journalctl`.

## Command line

Installing the package provides the `faasd` command:

```
faasd                  # show the logo and help
faasd version          # print the logo, version and commit
faasd install          # prepare /var/lib/faasd, write units, enable and start them
faasd up               # load docker-compose.yaml and forward its published ports
faasd service          # show help for service commands
faasd service logs gateway --since 1h
faasd service logs cron-connector -f
faasd collect          # forward a container's output to the journal
```

- `faasd install` creates `/var/lib/faasd/secrets` and `/var/lib/faasd-provider`,
  writes `basic-auth-user` (`admin`) and a random `basic-auth-password` if they
  are missing, copies `docker-compose.yaml`, `prometheus.yml` and `resolv.conf`
  from the current directory into `/var/lib/faasd`, checks that
  `/usr/local/bin/faasd` exists, renders `./hack/faasd.service` and
  `./hack/faasd-provider.service` into `/lib/systemd/system`, then runs
  `systemctl daemon-reload`, `enable` and `start` for both units.
- `faasd up` first checks that `https://checkip.amazonaws.com` answers, prints
  the version, loads the compose file given by `-f/--file` (default
  `docker-compose.yaml`) from `/var/lib/faasd`, creates the basic-auth files,
  then polls `/var/lib/faasd/hosts` for service addresses and opens one TCP
  proxy per published port until it receives SIGTERM or SIGINT.
- `faasd service logs NAME` must be run as root. It runs
  `journalctl -o cat -t NAMESPACE:NAME`; `--since` takes seconds or a duration
  such as `1h` or `10m` (default 10 minutes, `0` for no limit), `-f/--follow`
  follows the log and `--namespace` defaults to `openfaas`.
- `faasd collect` reads a container's stdout and stderr from file descriptors
  3 and 4 and sends each line to the journal. It also runs whenever the
  `CONTAINER_ID` environment variable is set.

## Library use

Start-up order of services:

```python
from faasd.compose import Service, build_deployment_order

services = [
    Service(name="gateway", depends_on=["nats"]),
    Service(name="nats"),
]
print(build_deployment_order(services))  # ['nats', 'gateway']
```

A loop in `depends_on` raises `faasd.depgraph.CircularDependencyError`.

Loading a compose file (only `ARCH_SUFFIX` is available for interpolation;
all volumes must be bind mounts):

```python
from faasd.compose import load_compose_file, parse_compose

config = load_compose_file("/var/lib/faasd", "docker-compose.yaml", lambda: ("x86_64", "Linux"))
services = parse_compose(config)
```

Other pieces:

- `faasd.config.read_from_env(env)` returns a `FaaSConfig` and a
  `ProviderConfig` from `service_timeout` (default 60 seconds), `port`
  (default 8081), `max_idle_conns` and `max_idle_conns_per_host` (default
  1024) and `sock` (default `/run/containerd/containerd.sock`).
- `faasd.journal_logs.JournalRequester().query(LogRequest(name=...))` starts
  `journalctl` and yields `LogMessage` objects.
- `faasd.resolver.LocalResolver` and `faasd.proxy.Proxy` are the hosts-file
  resolver and TCP proxy used by `faasd up`.
- `faasd.cninetwork` writes the CNI bridge configuration and finds a
  container's IP in the CNI data directory.
- `faasd.namespace_handler.NamespaceHandler`,
  `faasd.secret_handler.make_secret_handler` and
  `faasd.info_handler.make_info_handler` return callables that take a
  `werkzeug` `Request` and return a `Response`;
  `faasd.provider_setup.header_middleware` adds the `X-OpenFaaS-EULA` header
  to a WSGI app.
- `faasd.functions` holds helpers for function environments, labels and
  annotations, secret mounts and the function-count limits.

## What this package does not do

- It does not talk to containerd: `faasd up` does not pull images, create
  containers or attach them to the CNI network. It only forwards ports to
  addresses found in the hosts file.
- There is no `provider` command and no provider HTTP server. The handlers
  above are not routed or served, and there are no handlers to deploy,
  update, scale, list or delete functions, or to proxy function invocations.

## Running the tests

```
pip install .[test]
pytest
```