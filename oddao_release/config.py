from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from eth_utils import is_address, to_checksum_address

from oddao_release.utils.env import _env_float, _env_int, _env_str


DEFAULT_CHAIN_ID = 131313
DEFAULT_DEPLOYMENT_FILE = "deployments/fuji.json"
DEFAULT_SIGNATURES_DIR = "signatures"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True)
class LedgerConfig:
    rpc_url: str
    chain_id: int
    registry_address: str
    rpc_timeout_s: float
    confirm_timeout_s: float


@dataclass(frozen=True)
class ToolEnvConfig:
    ledger: LedgerConfig
    signatures_dir: Path
    signer_key: Optional[str]
    submitter_key: Optional[str]


def _die(msg: str) -> None:
    raise SystemExit(f"[oddao-release] {msg}")


def _registry_from_deployment(path: Path) -> str:
    if not path.exists():
        _die(
            f"Deployment file not found: {str(path)!r}. "
            "Set ODDAO_REGISTRY_ADDRESS or ODDAO_DEPLOYMENT_FILE."
        )
    try:
        deployment = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        _die(f"Cannot read deployment file {str(path)!r}: {exc}")
    contracts = deployment.get("contracts") if isinstance(deployment, dict) else None
    address = (contracts or {}).get("UpdateRegistry") or ""
    return str(address).strip()


def load_tool_env() -> ToolEnvConfig:
    """
    Load tool configuration from env/.env with strict validation.

    The registry address comes from ODDAO_REGISTRY_ADDRESS when set, otherwise
    from `contracts.UpdateRegistry` in the deployment file.
    """
    rpc_url = _env_str("RPC_URL", "").rstrip("/")
    if not rpc_url:
        _die("Missing required env var: ODDAO_RPC_URL.")
    if not rpc_url.startswith("http"):
        _die(f"ODDAO_RPC_URL must be http(s). Got: {rpc_url!r}")

    chain_id = _env_int("CHAIN_ID", DEFAULT_CHAIN_ID)
    if chain_id <= 0:
        _die(f"ODDAO_CHAIN_ID must be positive. Got: {chain_id}")

    registry = _env_str("REGISTRY_ADDRESS", "")
    if not registry:
        deployment_file = Path(_env_str("DEPLOYMENT_FILE", DEFAULT_DEPLOYMENT_FILE))
        registry = _registry_from_deployment(deployment_file)
    if not registry or registry.lower() == ZERO_ADDRESS:
        _die("UpdateRegistry not deployed (registry address is empty or zero).")
    if not is_address(registry):
        _die(f"Registry address is not a valid address: {registry!r}")

    ledger_cfg = LedgerConfig(
        rpc_url=rpc_url,
        chain_id=chain_id,
        registry_address=to_checksum_address(registry),
        rpc_timeout_s=_env_float("RPC_TIMEOUT_S", 10.0, minimum=1.0),
        confirm_timeout_s=_env_float("CONFIRM_TIMEOUT_S", 120.0, minimum=1.0),
    )

    return ToolEnvConfig(
        ledger=ledger_cfg,
        signatures_dir=Path(_env_str("SIGNATURES_DIR", DEFAULT_SIGNATURES_DIR) or DEFAULT_SIGNATURES_DIR),
        signer_key=_env_str("SIGNER_KEY", "") or None,
        submitter_key=_env_str("SUBMITTER_KEY", "") or None,
    )
