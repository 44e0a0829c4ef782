"""Operations on stored configurations: list, delete, provision, deprovision."""
import logging
import os
import shutil
import subprocess
import threading
from collections import deque
from datetime import datetime
from importlib.metadata import PackageNotFoundError, version as dist_version
from pathlib import Path
from typing import Callable, Dict, List, Optional

import typer

from .builder import write_artifacts
from .config import Config
from .errors import CommandError, NotFoundError
from .generator import KUBEFIRST_PATH_FLAG, env_var_name, generate
from .legacy import LEGACY_CLOUDS, LEGACY_INDEX
from .models import ENV_FILE, ConfigurationKey
from .providers import CLOUD_PROVIDERS
from .registry import RecordStore
from .utils import is_empty_dir, read_env_file
from .utils.normalize import shell_quote

logger = logging.getLogger("k1space.operations")

DEPROVISION_SCRIPT = "deprovision.sh"
# Output lines kept for the error message of a failed command
TAIL_LINES = 20

Echo = Callable[[str], None]


def _timestamp(now: datetime = None) -> str:
    return (now or datetime.now()).strftime("%Y%m%d_%H%M%S")


def list_configs(records: RecordStore) -> List[Dict]:
    """Describe every stored configuration, sorted by key."""
    rows = []
    for token, key, record in records.entries():
        rows.append({
            "key": token,
            "valid": key is not None,
            "cloud_provider": key.cloud_provider if key else "",
            "region": key.region if key else "",
            "prefix": key.static_prefix if key else "",
            "files": list(record.files),
            "flags": dict(record.flags),
        })
    return rows


def delete_config(records: RecordStore, token: str, now: datetime = None) -> Optional[Path]:
    """Back up a configuration's directory, then drop it from the index.

    The directory is renamed into ``.cache`` first. If the index cannot be
    written afterwards the rename is reversed and the error re-raised, so
    the configuration stays both on disk and in the index.

    Returns:
        The backup directory, or None when there was no directory to move
    """
    key = ConfigurationKey.parse(token)
    if token not in records:
        raise NotFoundError(f"Configuration '{token}' not found")

    home = records.home
    source = key.base_dir(home)
    backup = None
    if source.exists():
        cache_dir = home / ".cache"
        cache_dir.mkdir(parents=True, exist_ok=True)
        backup = cache_dir / f"{token}_{_timestamp(now)}"
        os.rename(source, backup)
        logger.info("Backed up %s to %s", source, backup)

    try:
        records.remove(token)
    except BaseException:
        if backup is not None:
            os.rename(backup, source)
            logger.error("Index update failed, restored %s", source)
        raise

    region_dir = source.parent
    provider_dir = region_dir.parent
    for directory in (region_dir, provider_dir):
        if not is_empty_dir(directory):
            break
        try:
            directory.rmdir()
            logger.info("Deleted empty directory %s", directory)
        except OSError as e:
            logger.error("Error deleting empty directory %s: %s", directory, e)
            break
    return backup


def delete_all_configs(home: Path = None) -> List[Path]:
    """Remove the documents, their legacy HCL copies and every provider directory."""
    home = Path(home) if home else Config.home()
    removed = []
    for name in ("index.yaml", "clouds.yaml", LEGACY_INDEX, LEGACY_CLOUDS):
        path = home / name
        if path.exists():
            path.unlink()
            removed.append(path)
            logger.info("Deleted %s", path)
    for provider in CLOUD_PROVIDERS:
        provider_dir = home / provider.lower()
        if provider_dir.exists():
            shutil.rmtree(provider_dir)
            removed.append(provider_dir)
            logger.info("Deleted cloud provider directory %s", provider_dir)
    return removed


def run_streaming(cmd: List[str], cwd: Path, log_path: Path, echo: Echo = typer.echo) -> None:
    """Run a command, copying stdout and stderr lines to the console and a log file."""
    log_path.parent.mkdir(parents=True, exist_ok=True)
    lock = threading.Lock()
    tail = deque(maxlen=TAIL_LINES)
    logger.info("Running %s in %s (log: %s)", " ".join(cmd), cwd, log_path)

    with open(log_path, "w") as log_file:
        try:
            process = subprocess.Popen(cmd, cwd=str(cwd), stdout=subprocess.PIPE,
                                       stderr=subprocess.PIPE, text=True)
        except OSError as e:
            raise CommandError(f"error starting {cmd[0]}: {e}") from e

        def pump(stream, prefix):
            for line in stream:
                line = line.rstrip("\n")
                with lock:
                    echo(f"{prefix}{line}")
                    log_file.write(f"{prefix}{line}\n")
                    tail.append(f"{prefix}{line}")
            stream.close()

        readers = [
            threading.Thread(target=pump, args=(process.stdout, ""), daemon=True),
            threading.Thread(target=pump, args=(process.stderr, "ERROR: "), daemon=True),
        ]
        for reader in readers:
            reader.start()
        returncode = process.wait()
        for reader in readers:
            reader.join()

    if returncode != 0:
        raise CommandError(
            f"{' '.join(cmd)} exited with status {returncode}; see {log_path}\n" + "\n".join(tail)
        )


def provision(records: RecordStore, token: str, echo: Echo = typer.echo, now: datetime = None) -> Path:
    """Run the init script of a configuration. Returns the log file path."""
    key = ConfigurationKey.parse(token)
    record = records.get(token)
    script = record.init_script()
    if not script or not Path(script).exists():
        raise CommandError(
            f"00-init.sh not found for '{token}'. Cannot provision cluster.",
            remediation="Re-run 'Create Config' for this configuration to regenerate its files.",
        )
    log_dir = records.home / ".logs" / key.cloud_provider / key.region / key.static_prefix
    log_path = log_dir / f"00-init-{_timestamp(now)}.log"
    run_streaming(["bash", script], Path(script).parent, log_path, echo)
    return log_path


_KUBECONFIG_COMMANDS = {
    "civo": ("civo", 'civo kubernetes config "$CLUSTER_NAME" --region "$CLOUD_REGION" --save --switch'),
    "digitalocean": ("doctl", 'doctl kubernetes cluster kubeconfig save "$CLUSTER_NAME"'),
    "k3d": ("k3d", 'k3d kubeconfig merge "$CLUSTER_NAME" --kubeconfig-merge-default'),
}


def generate_deprovision_script(records: RecordStore, token: str) -> str:
    """Render a teardown script from the configuration's environment file.

    Configuration values are assigned to shell variables once, escaped for
    double quotes, and only referenced quoted afterwards.
    """
    key = ConfigurationKey.parse(token)
    env_path = key.base_dir(records.home) / ENV_FILE
    if not env_path.exists():
        raise NotFoundError(f"{env_path} not found; regenerate the configuration first")
    env = read_env_file(env_path)

    def value(flag):
        return env.get(env_var_name(key, flag), "")

    git_provider = value("git-provider") or "github"
    domain = value("domain-name")
    subdomain = value("subdomain")
    variables = {
        "CLUSTER_NAME": value("cluster-name"),
        "CLOUD_PROVIDER": key.cloud_provider.lower(),
        "CLOUD_REGION": key.region,
        "GIT_PROVIDER": git_provider,
        "GIT_ORG": value(f"{git_provider}-org"),
        "VAULT_HOST": ".".join(p for p in ("vault", subdomain, domain) if p),
        "BASE_DIR": key.base_dir(records.home).as_posix(),
    }
    assignments = "\n".join(f'{name}="{shell_quote(v)}"' for name, v in variables.items())
    cli, kubeconfig_cmd = _KUBECONFIG_COMMANDS.get(
        key.cloud_provider.lower(), ("kubectl", 'echo "Using current kubeconfig for $CLUSTER_NAME"'))

    return f"""#!/bin/bash
set -e

{assignments}
REPO_PATH="$BASE_DIR/.repositories/gitops"

echo "Deprovisioning cluster for $CLOUD_PROVIDER in region $CLOUD_REGION with prefix {shell_quote(key.static_prefix)}"

# Check for required tools
for cmd in kubectl kubefirst terraform {cli}; do
    if ! command -v $cmd &> /dev/null; then
        echo "Error: $cmd is not installed or not in PATH"
        exit 1
    fi
done

# Get kubeconfig
{kubeconfig_cmd}

# Get the actual context name from kubectl
CONTEXT_NAME=$(kubectl config get-contexts --output=name | grep -F "$CLUSTER_NAME")

if [ -z "$CONTEXT_NAME" ]; then
    echo "Error: Unable to find context for cluster $CLUSTER_NAME"
    exit 1
fi

kubectl config use-context "$CONTEXT_NAME"

# Get Vault token
VAULT_TOKEN=$(kubectl --context "$CONTEXT_NAME" -n vault get secrets/vault-unseal-secret --template='{{{{index .data "root-token"}}}}' | base64 -d)
if [ -z "$VAULT_TOKEN" ]; then
    echo "Error: Failed to retrieve Vault token"
    exit 1
fi

kubefirst terraform set-env \\
  --vault-token "$VAULT_TOKEN" \\
  --vault-url "https://$VAULT_HOST" \\
  --output-file .env
source .env

# Clone gitops repository
git clone "git@$GIT_PROVIDER.com:$GIT_ORG/gitops.git" "$REPO_PATH"
cd "$REPO_PATH/terraform"

# Deprovision cloud provider resources
cd "$CLOUD_PROVIDER"
terraform init
terraform destroy -auto-approve

# Deprovision git provider resources
cd "../$GIT_PROVIDER"
terraform init
terraform destroy -auto-approve

# Cleanup
cd "$BASE_DIR"
rm -rf "$REPO_PATH" .env

echo "Deprovisioning complete. Please manually remove any remaining cloud resources if necessary."
"""


def write_deprovision_script(records: RecordStore, token: str, regenerate: bool = False) -> Path:
    """Write deprovision.sh next to the configuration, keeping an existing one unless asked."""
    key = ConfigurationKey.parse(token)
    records.get(token)
    script_path = key.base_dir(records.home) / DEPROVISION_SCRIPT
    if script_path.exists() and not regenerate:
        logger.info("Using existing deprovision script %s", script_path)
        return script_path
    content = generate_deprovision_script(records, token)
    with open(script_path, "w") as f:
        f.write(content)
    os.chmod(script_path, 0o755)
    logger.info("Deprovisioning script generated at %s", script_path)
    return script_path


def deprovision(records: RecordStore, token: str, echo: Echo = typer.echo, now: datetime = None) -> Path:
    """Run a configuration's deprovision script. Returns the log file path."""
    key = ConfigurationKey.parse(token)
    script_path = key.base_dir(records.home) / DEPROVISION_SCRIPT
    if not script_path.exists():
        raise NotFoundError(f"{script_path} not found; generate it first")
    log_dir = records.home / ".logs" / key.cloud_provider / key.region / key.static_prefix
    log_path = log_dir / f"deprovision-{_timestamp(now)}.log"
    run_streaming(["bash", str(script_path)], script_path.parent, log_path, echo)
    return log_path


def set_kubefirst_binary(records: RecordStore, token: str, binary: str) -> Path:
    """Point a configuration at another kubefirst binary and regenerate its files.

    Returns:
        The configuration's directory
    """
    key = ConfigurationKey.parse(token)
    record = records.get(token)
    binary = (binary or "").strip()
    if not binary:
        raise CommandError("kubefirst binary path must not be empty")
    flags = dict(record.flags)
    flags[KUBEFIRST_PATH_FLAG] = binary
    artifacts = generate(key, flags, records.home)
    write_artifacts(artifacts)
    records.upsert(key.cloud_provider, key.region, key.static_prefix, {KUBEFIRST_PATH_FLAG: binary})
    logger.info("Config %s now uses kubefirst binary %s", token, binary)
    return artifacts.base_dir


def config_paths(home: Path = None) -> Dict[str, List[Path]]:
    """Base directory, document and env files, and provider directories."""
    home = Path(home) if home else Config.home()
    files, directories = [], []
    if home.exists():
        for path in sorted(home.rglob("*")):
            if path.is_file() and (path.suffix in (".yaml", ".hcl") and path.parent == home or path.name == ENV_FILE):
                files.append(path)
        for path in sorted(home.iterdir()):
            if path.is_dir() and path.name not in (".cache", ".repositories", ".logs"):
                directories.append(path)
    return {"base": [home], "files": files, "directories": directories}


def version() -> str:
    try:
        return dist_version("k1space")
    except PackageNotFoundError:
        return "unknown"
