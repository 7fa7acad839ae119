"""Installing faasd: working directories, basic-auth secrets, files and systemd units."""

from __future__ import annotations

import logging
import os
import secrets
import shutil
import string

from . import systemd

logger = logging.getLogger(__name__)

WORKING_DIRECTORY_PERMISSION = 0o644
SECRET_DIR_PERMISSION = 0o755

FAASD_WD = "/var/lib/faasd"
FAASD_PROVIDER_WD = "/var/lib/faasd-provider"
DEFAULT_BIN_DIR = "/usr/local/bin/"

PASSWORD_LENGTH = 63
PASSWORD_DIGITS = 10

_INSTALLED_MESSAGE = """
The initial setup downloads various container images, which may take a 
minute or two depending on your connection.

Check the status of the faasd service with:

  sudo journalctl -u faasd --lines 100 -f

Login with:
  sudo -E cat /var/lib/faasd/secrets/basic-auth-password | faas-cli login -s"""


def ensure_working_dir(folder: str) -> None:
    """Create folder (and its parents) when it cannot be found."""
    if not os.path.exists(folder):
        os.makedirs(folder, mode=WORKING_DIRECTORY_PERMISSION, exist_ok=True)


def ensure_secrets_dir(folder: str) -> None:
    """Create a secrets folder (and its parents) when it cannot be found."""
    if not os.path.exists(folder):
        os.makedirs(folder, mode=SECRET_DIR_PERMISSION, exist_ok=True)


def copy_to(source: str, dest_folder: str) -> str:
    """Copy the file source into dest_folder, keeping its name, and return the new path."""
    destination = os.path.join(dest_folder, os.path.basename(source))
    with open(source, "rb") as src, open(destination, "wb") as out:
        shutil.copyfileobj(src, out)
    return destination


def bin_exists(folder: str, name: str) -> None:
    """Raise FileNotFoundError unless folder/name exists."""
    find_path = os.path.join(folder, name)
    if not os.path.exists(find_path):
        raise FileNotFoundError(
            f"unable to stat {find_path}, install this binary before continuing"
        )


def generate_password(length: int = PASSWORD_LENGTH, digits: int = PASSWORD_DIGITS) -> str:
    """Return a random password of letters holding exactly `digits` decimal digits."""
    if length < 0 or digits < 0 or digits > length:
        raise ValueError("number of digits exceeds available length")
    letters = string.ascii_letters
    chars = [secrets.choice(letters) for _ in range(length - digits)]
    chars.extend(secrets.choice(string.digits) for _ in range(digits))
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def make_file(file_path: str, contents: str) -> bool:
    """Write contents to file_path unless it already exists.

    Returns True when the file was written and False when it already existed.
    """
    try:
        os.stat(file_path)
    except FileNotFoundError:
        logger.info("Writing to: %r", file_path)
        fd = os.open(file_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, WORKING_DIRECTORY_PERMISSION)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(contents)
        return True
    logger.info("File exists: %r", file_path)
    return False


def make_basic_auth_files(directory: str) -> None:
    """Create basic-auth-password and basic-auth-user in directory if missing."""
    make_file(os.path.join(directory, "basic-auth-password"), generate_password())
    make_file(os.path.join(directory, "basic-auth-user"), "admin")


def run_install(
    source_dir: str = ".",
    working_dir: str = FAASD_WD,
    provider_dir: str = FAASD_PROVIDER_WD,
    bin_dir: str = DEFAULT_BIN_DIR,
    template_dir: str = systemd.DEFAULT_TEMPLATE_DIR,
    unit_dir: str = systemd.DEFAULT_UNIT_DIR,
) -> None:
    """Prepare directories and files, install the systemd units and start them."""
    secrets_dir = os.path.join(working_dir, "secrets")
    ensure_working_dir(secrets_dir)
    ensure_working_dir(provider_dir)

    try:
        make_basic_auth_files(secrets_dir)
    except OSError as exc:
        raise OSError(f"cannot create basic-auth-* files: {exc}") from exc

    for name in ("docker-compose.yaml", "prometheus.yml", "resolv.conf"):
        copy_to(os.path.join(source_dir, name), working_dir)

    bin_exists(bin_dir, "faasd")

    systemd.install_unit(
        "faasd-provider",
        {"Cwd": provider_dir, "SecretMountPath": secrets_dir},
        template_dir,
        unit_dir,
    )
    systemd.install_unit("faasd", {"Cwd": working_dir}, template_dir, unit_dir)

    systemd.daemon_reload()
    systemd.enable("faasd-provider")
    systemd.enable("faasd")
    systemd.start("faasd-provider")
    systemd.start("faasd")

    print(_INSTALLED_MESSAGE)
    print("")