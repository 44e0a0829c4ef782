"""Interactive assembly of a new configuration.

One session walks through::

    START -> PREFIX_AND_PROVIDER -> REFRESH_CATALOG -> REGION_AND_NODE_TYPE
          -> FLAG_COLLECTION -> GENERATE -> PERSIST_RECORD -> SUMMARY -> DONE

Cancelling a prompt moves to ABORTED. Nothing is written before GENERATE;
store and provider errors raised earlier propagate with no partial writes.
Once GENERATE has written files a later failure can leave them on disk
without an index entry. The index stays authoritative and the files can be
regenerated from it.
"""
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import typer

from . import kubefirst
from .catalog import CatalogStore
from .config import Config
from .errors import CommandError
from .generator import KUBEFIRST_PATH_FLAG, Artifacts, generate
from .models import CloudConfig
from .prompts import Prompter
from .providers import (
    CLOUD_PROVIDERS,
    has_required_credential,
    missing_credential_message,
    requires_catalog,
)
from .registry import RecordStore

logger = logging.getLogger("k1space.builder")

REGION_FLAG = "cloud-region"
NODE_TYPE_FLAG = "node-type"
PREFIX_DEFAULT_KEY = "static-prefix"
# Region used for providers that do not declare a cloud-region flag
LOCAL_REGION = "local"


class BuilderState(str, Enum):
    """Phases of a configuration session."""
    START = 'start'
    PREFIX_AND_PROVIDER = 'prefix_and_provider'
    REFRESH_CATALOG = 'refresh_catalog'
    REGION_AND_NODE_TYPE = 'region_and_node_type'
    FLAG_COLLECTION = 'flag_collection'
    GENERATE = 'generate'
    PERSIST_RECORD = 'persist_record'
    SUMMARY = 'summary'
    DONE = 'done'
    ABORTED = 'aborted'


@dataclass
class BuildResult:
    state: BuilderState
    draft: CloudConfig
    artifacts: Optional[Artifacts] = None
    messages: List[str] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.state == BuilderState.DONE


def resolve_flags(declared: Iterable[str], answers: Dict[str, str],
                  suggestions: Dict[str, str]) -> Dict[str, str]:
    """Pick each flag's value: the answer, else the suggestion, else empty."""
    resolved = {}
    for flag in declared:
        answer = (answers.get(flag) or "").strip()
        resolved[flag] = answer if answer else suggestions.get(flag, "")
    return resolved


def write_artifacts(artifacts: Artifacts) -> None:
    artifacts.base_dir.mkdir(parents=True, exist_ok=True)
    for path, content, mode in artifacts.files():
        with open(path, "w") as f:
            f.write(content)
        os.chmod(path, mode)
        logger.info("Generated %s", path)


FlagSource = Callable[[str, str], Dict[str, str]]


class ConfigurationBuilder:
    """Drives one interactive configuration session."""

    def __init__(self, records: RecordStore, catalog: CatalogStore,
                 prompter: Prompter = None,
                 flag_source: FlagSource = kubefirst.fetch_flags,
                 kubefirst_path: str = None,
                 echo: Callable[[str], None] = typer.echo):
        self.records = records
        self.catalog = catalog
        self.prompter = prompter or Prompter()
        self.flag_source = flag_source
        self.kubefirst_path = kubefirst_path
        self.echo = echo
        self.state = BuilderState.START

    def _enter(self, state: BuilderState) -> None:
        logger.debug("Builder state %s -> %s", self.state.value, state.value)
        self.state = state

    def run(self) -> BuildResult:
        self.state = BuilderState.START
        draft = CloudConfig()
        self.records.load()
        self.catalog.load()
        defaults = self.records.defaults()

        try:
            self._enter(BuilderState.PREFIX_AND_PROVIDER)
            self._prefix_and_provider(draft, defaults)
            if not has_required_credential(draft.cloud_provider):
                message = missing_credential_message(draft.cloud_provider)
                logger.error("Missing required token for %s", draft.cloud_provider)
                self.echo(message)
                self._enter(BuilderState.ABORTED)
                return BuildResult(self.state, draft, messages=[message])

            binary = self._choose_binary(defaults)
            suggestions = dict(defaults)
            suggestions.update(self._template_flags())

            if requires_catalog(draft.cloud_provider):
                self._enter(BuilderState.REFRESH_CATALOG)
                self.catalog.refresh_regions(draft.cloud_provider)
                self.catalog.refresh_node_types(draft.cloud_provider)

            declared = self.flag_source(binary, draft.cloud_provider)
            if not declared:
                raise CommandError(f"No flags found for {draft.cloud_provider}")
            logger.info("Flags retrieved for %s: %s", draft.cloud_provider, sorted(declared))

            self._enter(BuilderState.REGION_AND_NODE_TYPE)
            fixed = self._region_and_node_type(draft, declared, suggestions)

            self._enter(BuilderState.FLAG_COLLECTION)
            answers = {}
            for flag in sorted(declared):
                if flag in fixed or flag == KUBEFIRST_PATH_FLAG:
                    continue
                answers[flag] = self.prompter.text(
                    f"Enter value for {flag}",
                    default=suggestions.get(flag, ""),
                    description=declared[flag],
                )
            open_flags = [f for f in declared if f not in fixed and f != KUBEFIRST_PATH_FLAG]
            draft.flags = resolve_flags(open_flags, answers, suggestions)
            draft.flags.update(fixed)
            draft.flags[KUBEFIRST_PATH_FLAG] = binary
        except typer.Abort:
            logger.info("Configuration cancelled by user")
            self.echo("Configuration cancelled.")
            self._enter(BuilderState.ABORTED)
            return BuildResult(self.state, draft)

        self._enter(BuilderState.GENERATE)
        key = draft.key()
        artifacts = generate(key, draft.flags, self.records.home)
        write_artifacts(artifacts)

        self._enter(BuilderState.PERSIST_RECORD)
        self.records.remember(PREFIX_DEFAULT_KEY, draft.static_prefix)
        self.records.upsert(draft.cloud_provider, draft.region, draft.static_prefix, draft.flags)
        self.catalog.record_region(draft.cloud_provider, draft.region)
        self.catalog.persist()

        self._enter(BuilderState.SUMMARY)
        messages = self._summary(draft, artifacts)
        for line in messages:
            self.echo(line)
        self._enter(BuilderState.DONE)
        return BuildResult(self.state, draft, artifacts=artifacts, messages=messages)

    def _prefix_and_provider(self, draft: CloudConfig, defaults: Dict[str, str]) -> None:
        default_prefix = defaults.get(PREFIX_DEFAULT_KEY) or Config.DEFAULT_PREFIX
        prefix = self.prompter.text("Enter static prefix", default=default_prefix,
                                    description=f"Default is '{default_prefix}'")
        draft.static_prefix = (prefix or "").strip() or default_prefix
        draft.cloud_provider = self.prompter.select("Select cloud provider", list(CLOUD_PROVIDERS))
        logger.info("Initial form completed: prefix=%s provider=%s", draft.static_prefix, draft.cloud_provider)

    def _choose_binary(self, defaults: Dict[str, str]) -> str:
        if self.kubefirst_path:
            return self.kubefirst_path
        options = []
        global_path = kubefirst.find_global_binary()
        if global_path:
            options.append(("Use global kubefirst", global_path))
        local_path = str(kubefirst.local_binary_path(self.records.home))
        options.append((f"Use {local_path}", local_path))
        options.append(("Specify a custom path", "custom"))

        selected = self.prompter.select("Choose the kubefirst binary option:", options,
                                        default=defaults.get(KUBEFIRST_PATH_FLAG))
        if selected == "custom":
            selected = self.prompter.text("Enter the path to the local kubefirst binary",
                                          default=defaults.get(KUBEFIRST_PATH_FLAG, ""))
            if not Path(selected).exists():
                raise CommandError(f"kubefirst binary not found at {selected}")
        return selected

    def _template_flags(self) -> Dict[str, str]:
        """Flags of a previous config the user picks as a template, if any."""
        tokens = self.records.tokens()
        if not tokens:
            return {}
        if not self.prompter.confirm("Do you want to use values from a previous config?"):
            return {}
        selected = self.prompter.select("Select a previous config to use as a template", tokens)
        return {k: v for k, v in self.records.get(selected).flags.items() if v}

    def _region_and_node_type(self, draft: CloudConfig, declared: Dict[str, str],
                              suggestions: Dict[str, str]) -> Dict[str, str]:
        fixed = {}
        regions = self.catalog.regions(draft.cloud_provider)
        suggested_region = suggestions.get(REGION_FLAG, "")
        if regions and requires_catalog(draft.cloud_provider):
            region = self.prompter.select(
                "Select cloud region", regions,
                default=suggested_region if suggested_region in regions else None,
            )
        else:
            # recorded regions of local providers are only suggestions
            fallback = regions[-1] if regions else (LOCAL_REGION if REGION_FLAG not in declared else "")
            region = self.prompter.text(
                "Enter cloud region",
                default=suggested_region or fallback,
                description=declared.get(REGION_FLAG, ""),
            )
        draft.region = (region or "").strip() or suggested_region
        if REGION_FLAG in declared:
            fixed[REGION_FLAG] = draft.region

        if NODE_TYPE_FLAG in declared:
            node_types = self.catalog.node_types(draft.cloud_provider)
            suggested_node = suggestions.get(NODE_TYPE_FLAG, "")
            if node_types:
                names = [n.name for n in node_types]
                node_type = self.prompter.select(
                    "Select node type",
                    [(n.label(), n.name) for n in node_types],
                    default=suggested_node if suggested_node in names else None,
                )
            else:
                node_type = self.prompter.text("Enter node type", default=suggested_node,
                                               description=declared[NODE_TYPE_FLAG])
            draft.selected_node_type = (node_type or "").strip() or suggested_node
            fixed[NODE_TYPE_FLAG] = draft.selected_node_type
        return fixed

    def _summary(self, draft: CloudConfig, artifacts: Artifacts) -> List[str]:
        return [
            "✅ Configuration completed successfully! Summary:",
            "",
            f"☁️ Cloud Provider: {draft.cloud_provider}",
            f"🌎 Region: {draft.region}",
            f"💻 Node Type: {draft.selected_node_type}",
            "",
            "📁 Generated Files:",
            f"  Init Script: {artifacts.init_path}",
            f"  Kubefirst Script: {artifacts.provider_script_path}",
            f"  Environment File: {artifacts.env_path}",
            "",
            "🚀 To run the initialization script, use the following command:",
            f"cd {artifacts.base_dir} && ./00-init.sh",
        ]
