[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "faasd"
version = "0.1.0"
description = "Core-service start-up, port proxies, journal logs and provider HTTP handlers for a single-host serverless runtime"
requires-python = ">=3.10"
keywords = ["faas", "serverless", "functions", "containerd", "cni", "systemd", "compose"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]
dependencies = [
    "pyyaml",
    "werkzeug",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
faasd = "faasd.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["faasd"]

[tool.pytest.ini_options]
addopts = "-ra"
