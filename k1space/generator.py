"""Render the environment file, init script and provider script of a configuration.

Everything here is a pure function of the configuration key and its flags.
Flags are always rendered sorted by name so that the same flag set produces
byte-identical artifacts however it was assembled.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple

from .config import Config
from .models import ENV_FILE, INIT_SCRIPT, PROVIDER_SCRIPT, ConfigurationKey
from .utils.normalize import env_segment, shell_quote

# Flag holding the bootstrap binary location; exported but never passed to it.
KUBEFIRST_PATH_FLAG = "kubefirst-path"


def env_prefix(key: ConfigurationKey) -> str:
    """``<PREFIX>_<PROVIDER>_<REGION>``; the static prefix keeps its case."""
    return "_".join([
        env_segment(key.static_prefix, upper=False),
        env_segment(key.cloud_provider),
        env_segment(key.region),
    ])


def env_var_name(key: ConfigurationKey, flag: str) -> str:
    return f"{env_prefix(key)}_{env_segment(flag)}"


def sorted_flags(flags: Dict[str, str]) -> List[Tuple[str, str]]:
    return sorted(flags.items(), key=lambda item: item[0])


def render_env(key: ConfigurationKey, flags: Dict[str, str]) -> str:
    lines = [f"# kubefirst environment for {key.token}, generated by k1space"]
    lines += [
        f'export {env_var_name(key, flag)}="{shell_quote(value)}"'
        for flag, value in sorted_flags(flags)
    ]
    kubefirst_path = flags.get(KUBEFIRST_PATH_FLAG)
    if kubefirst_path:
        lines.append(f'export KUBEFIRST_PATH="{shell_quote(kubefirst_path)}"')
    return "\n".join(lines) + "\n"


def render_init(wrapper: str = None) -> str:
    wrapper = wrapper or Config.SECRETS_WRAPPER
    return f"""#!/bin/bash
{wrapper} --env-file="./{ENV_FILE}" -- sh ./{PROVIDER_SCRIPT}
"""


_PROVIDER_SCRIPT_HEADER = f"""#!/bin/bash

# Source the {ENV_FILE} file if it hasn't been sourced already
if [ -z "$K1_ENV_SOURCED" ]; then
    if [ -f "./{ENV_FILE}" ]; then
        source ./{ENV_FILE}
        export K1_ENV_SOURCED=true
    else
        echo "Error: {ENV_FILE} file not found. Please run this script from the correct directory or use {INIT_SCRIPT}."
        exit 1
    fi
fi

# Check if KUBEFIRST_PATH is set
if [ -z "$KUBEFIRST_PATH" ]; then
    echo "Error: KUBEFIRST_PATH is not set. Please ensure {ENV_FILE} file is properly configured."
    exit 1
fi

"""


def render_provider_script(key: ConfigurationKey, flags: Dict[str, str]) -> str:
    arguments = [
        f'  --{flag} "${env_var_name(key, flag)}"'
        for flag, value in sorted_flags(flags)
        if value != "" and flag != KUBEFIRST_PATH_FLAG
    ]
    command = f'"${{KUBEFIRST_PATH}}" {key.cloud_provider.lower()} create'
    if arguments:
        command += " \\\n" + " \\\n".join(arguments)
    return _PROVIDER_SCRIPT_HEADER + command + "\n"


@dataclass(frozen=True)
class Artifacts:
    """The three rendered files of a configuration and where they belong."""
    key: ConfigurationKey
    base_dir: Path
    env: str
    init: str
    provider_script: str

    @property
    def env_path(self) -> Path:
        return self.base_dir / ENV_FILE

    @property
    def init_path(self) -> Path:
        return self.base_dir / INIT_SCRIPT

    @property
    def provider_script_path(self) -> Path:
        return self.base_dir / PROVIDER_SCRIPT

    def files(self) -> List[Tuple[Path, str, int]]:
        """(path, content, mode) in record order."""
        return [
            (self.env_path, self.env, 0o644),
            (self.init_path, self.init, 0o755),
            (self.provider_script_path, self.provider_script, 0o755),
        ]


def generate(key: ConfigurationKey, flags: Dict[str, str], home: Path = None) -> Artifacts:
    home = Path(home) if home else Config.home()
    return Artifacts(
        key=key,
        base_dir=key.base_dir(home),
        env=render_env(key, flags),
        init=render_init(),
        provider_script=render_provider_script(key, flags),
    )
