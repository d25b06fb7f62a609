"""Parse configuration and the shared YAML/environment loader."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence
from urllib.parse import urlparse

import yaml

from .address import NETWORK_VERSIONS
from .model import BlockInfo
from .rules import SplitRule, parse_split_rules
from .script import Mode
from .transforms import Transform, promote_long_values
from .tx import Transaction


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".bobtx.yaml"
_CONFIG_PATH_OVERRIDE: Path | None = None


@dataclass
class ParseConfig:
    """Everything a single :func:`bobtx.parser.parse` call needs.

    Either ``transaction`` or a non-empty ``raw_tx_hex`` must be set. When
    ``reject_unknown_leading_opcode`` is true, scripts that start with an
    unassigned opcode byte fail to decode instead of being split as data.
    """

    transaction: Transaction | None = None
    raw_tx_hex: str | None = None
    split: Sequence[SplitRule] = ()
    transform: Transform | None = None
    mode: Mode = Mode.DEEP
    network: str = "mainnet"
    block: BlockInfo | None = None
    reject_unknown_leading_opcode: bool = False


@dataclass
class RPCConfig:
    """Connection details for a node that serves ``getrawtransaction``."""

    user: str
    password: str
    host: str = "127.0.0.1"
    port: int = 8332
    use_https: bool = False

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_https else "http"
        return f"{scheme}://{self.host}:{self.port}"


def set_default_config_path(path: str | Path | None) -> None:
    """Remember a user-supplied config path for future loads."""

    global _CONFIG_PATH_OVERRIDE
    _CONFIG_PATH_OVERRIDE = Path(path).expanduser() if path else None


def _resolve_path(config_path: str | Path | None) -> tuple[Path, bool]:
    explicit_path = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    path = (
        Path(config_path).expanduser()
        if config_path is not None
        else _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH
    )
    return path, explicit_path


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML mapping")
    return loaded


def _section(file_config: dict[str, Any], name: str, path: Path) -> dict[str, Any]:
    section = file_config.get(name, {})
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected '{name}' to be a mapping in {path}")
    return section


def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
    return None


def _coerce_port(raw: Any, *, source: str) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid port in {source}: {raw}") from exc


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def coerce_mode(raw: Any) -> Mode:
    if raw is None:
        return Mode.DEEP
    if isinstance(raw, Mode):
        return raw
    try:
        return Mode(str(raw).strip().lower())
    except ValueError as exc:
        raise ConfigurationError(f"mode must be 'deep' or 'shallow', got {raw!r}") from exc


def coerce_network(raw: Any) -> str:
    network = str(raw).strip().lower()
    if network not in NETWORK_VERSIONS:
        choices = ", ".join(sorted(NETWORK_VERSIONS))
        raise ConfigurationError(f"network must be one of {choices}; got {raw!r}")
    return network


def load_parse_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ParseConfig:
    """Build a :class:`ParseConfig` from overrides, environment and YAML.

    The YAML file may hold the settings under a ``parse:`` section or at the
    top level::

        parse:
          mode: shallow
          network: mainnet
          promote_long_values: 512
          split:
            - token: {op: OP_RETURN}
              include: l
            - token: {s: "|"}
              require: OP_RETURN

    The returned config has no transaction source; callers fill in
    ``raw_tx_hex`` or ``transaction`` before parsing.
    """

    env_map = os.environ if env is None else env
    path, explicit_path = _resolve_path(config_path)
    file_config = _load_config_file(path, required=explicit_path)
    section = _section(file_config, "parse", path) if "parse" in file_config else file_config
    override_map = dict(overrides or {})

    raw_split = _first_value(override_map.get("split"), section.get("split"))
    split = parse_split_rules(
        raw_split, lambda msg: ConfigurationError(f"{path}: {msg}")
    )

    mode = coerce_mode(
        _first_value(override_map.get("mode"), env_map.get("BOBTX_MODE"), section.get("mode"), Mode.DEEP.value)
    )
    network = coerce_network(
        _first_value(
            override_map.get("network"), env_map.get("BOBTX_NETWORK"), section.get("network"), "mainnet"
        )
    )
    reject_unknown = _first_value(
        _coerce_bool(override_map.get("reject_unknown_leading_opcode")),
        _coerce_bool(section.get("reject_unknown_leading_opcode")),
        False,
    )

    transform: Transform | None = None
    limit = _first_value(override_map.get("promote_long_values"), section.get("promote_long_values"))
    if limit is not None:
        try:
            transform = promote_long_values(int(limit))
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"promote_long_values must be a non-negative byte count, got {limit!r}"
            ) from exc

    return ParseConfig(
        split=split,
        transform=transform,
        mode=mode,
        network=network,
        reject_unknown_leading_opcode=bool(reject_unknown),
    )


def _parse_endpoint(raw: str | None) -> tuple[str | None, int | None, bool | None]:
    if not raw:
        return None, None, None
    parsed = urlparse(raw)
    if not parsed.scheme and not parsed.hostname:
        raise ConfigurationError(f"Invalid RPC endpoint URL: {raw}")
    host = parsed.hostname or None
    port = parsed.port
    use_https = parsed.scheme.lower() == "https" if parsed.scheme else None
    return host, port, use_https


def load_rpc_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> RPCConfig:
    """Load RPC configuration from overrides, ``BOBTX_RPC_*`` variables and YAML."""

    env_map = os.environ if env is None else env
    path, explicit_path = _resolve_path(config_path)
    file_config = _load_config_file(path, required=explicit_path)
    rpc_section = _section(file_config, "rpc", path)
    override_map = dict(overrides or {})

    endpoint_host, endpoint_port, endpoint_use_https = _parse_endpoint(
        _first_value(
            override_map.get("endpoint"), env_map.get("BOBTX_RPC_ENDPOINT"), rpc_section.get("endpoint")
        )
    )

    resolved_user = _first_value(
        override_map.get("user"), env_map.get("BOBTX_RPC_USER"), rpc_section.get("user")
    )
    resolved_password = _first_value(
        override_map.get("password"), env_map.get("BOBTX_RPC_PASSWORD"), rpc_section.get("password")
    )
    if not resolved_user or not resolved_password:
        raise ConfigurationError(
            "RPC credentials must be provided via BOBTX_RPC_* environment variables or a config file"
        )

    resolved_host = _first_value(
        override_map.get("host"),
        endpoint_host,
        env_map.get("BOBTX_RPC_HOST"),
        rpc_section.get("host"),
        "127.0.0.1",
    )
    resolved_port = _first_value(
        _coerce_port(override_map.get("port"), source="overrides"),
        endpoint_port,
        _coerce_port(env_map.get("BOBTX_RPC_PORT"), source="environment"),
        _coerce_port(rpc_section.get("port"), source=f"{path} rpc.port"),
        8332,
    )
    resolved_use_https = _first_value(
        _coerce_bool(override_map.get("use_https")),
        endpoint_use_https,
        _coerce_bool(env_map.get("BOBTX_RPC_USE_HTTPS")),
        _coerce_bool(rpc_section.get("use_https")),
        False,
    )

    return RPCConfig(
        user=str(resolved_user),
        password=str(resolved_password),
        host=str(resolved_host),
        port=int(resolved_port),
        use_https=bool(resolved_use_https),
    )
