"""`oddao-release` command line.

    oddao-release sign --component validator --version 1.2.0 --hash 0x<sha256> \
        [--min-version 1.1.0] [--changelog <cid>] [--key <private-key>]
    oddao-release publish [--submitter-key <private-key>]
    oddao-release sign-revoke --component validator --version 1.2.0 --reason "CVE-..." [--key ...]
    oddao-release revoke --component validator --version 1.2.0 --reason "CVE-..." [--key ...]
    oddao-release min-version-digest --component validator --version 1.1.0
    oddao-release signers-digest --signers 0xA...,0xB...,0xC... --threshold 2

Keys default to ODDAO_SIGNER_KEY / ODDAO_SUBMITTER_KEY. Exit status is 0 on
success and 1 on any classified failure.
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from eth_utils import to_hex

from oddao_release import __version__
from oddao_release.config import ToolEnvConfig, load_tool_env
from oddao_release.core.encoding import min_version_digest, signer_update_digest
from oddao_release.core.errors import InputValidationError, ReleaseError
from oddao_release.core.schemas import (
    OperationContext,
    RevokeRequest,
    SignReleaseRequest,
    SignRevokeRequest,
    SubmissionResult,
    build_request,
)
from oddao_release.core.signing import load_account
from oddao_release.flows.publish import read_checked_context, submit_publish
from oddao_release.flows.revoke import submit_revoke
from oddao_release.flows.sign import SignResult, sign_release, sign_revoke
from oddao_release.ledger.base import LedgerClient
from oddao_release.store.files import FileAttestationStore


def build_ledger(cfg: ToolEnvConfig, *, submitter_key: Optional[str] = None) -> LedgerClient:
    from oddao_release.ledger.web3_client import Web3LedgerClient

    account = load_account(submitter_key) if submitter_key else None
    return Web3LedgerClient(
        cfg.ledger.rpc_url,
        cfg.ledger.registry_address,
        account=account,
        rpc_timeout_s=cfg.ledger.rpc_timeout_s,
        confirm_timeout_s=cfg.ledger.confirm_timeout_s,
    )


def _submitter_key(args: argparse.Namespace, cfg: ToolEnvConfig) -> str:
    key = args.submitter_key or cfg.submitter_key
    if not key:
        raise InputValidationError("submitter_key", "provide the release manager key via --submitter-key or ODDAO_SUBMITTER_KEY")
    return key


def _print_signed(title: str, result: SignResult, store: FileAttestationStore) -> None:
    att = result.attestation
    print(f"=== {title} ===")
    print(f"Signer:          {att.signer}")
    print(f"Registry:        {att.registry_address}")
    print(f"Component:       {att.component}")
    print(f"Version:         {att.version}")
    if att.operation == "REVOKE":
        print(f"Reason:          {att.reason}")
    else:
        print(f"Binary Hash:     {att.binary_hash}")
        print(f"Min Version:     {att.min_version or '(none)'}")
        print(f"Changelog:       {att.changelog_reference or '(none)'}")
    print(f"Operation Nonce: {att.nonce}")
    print(f"Threshold:       {result.threshold}")
    print(f"Signature:       {att.signature}")
    print(f"Saved to:        {store.path_for(result.key)}")


def _print_submitted(title: str, result: SubmissionResult) -> None:
    rec = result.record
    print(f"=== {title} ===")
    print(f"Transaction:     {result.tx_hash}")
    print(f"Block:           {result.block_number}")
    print(f"Signers:         {', '.join(result.signers)}")
    print(f"Published at:    {rec.published_at}")
    print(f"Binary hash:     {rec.binary_hash}")
    print(f"Published by:    {rec.publisher}")
    print(f"Revoked:         {rec.revoked}")
    if rec.revoked:
        print(f"Revoke reason:   {rec.revoke_reason}")
    for key in result.removed:
        print(f"Removed:         {key}")
    for key in result.failed_removals:
        print(f"Left in place:   {key} (remove it by hand)")


def cmd_sign(args: argparse.Namespace, cfg: ToolEnvConfig) -> int:
    request = build_request(
        SignReleaseRequest,
        component=args.component,
        version=args.version,
        binary_hash=args.hash,
        min_version=args.min_version or "",
        changelog_reference=args.changelog or "",
        key=args.key or cfg.signer_key,
    )
    store = FileAttestationStore(cfg.signatures_dir)
    result = sign_release(request, ledger=build_ledger(cfg), store=store)
    _print_signed("ODDAO Release Signature", result, store)
    print(f"\nCollect {result.threshold} signatures and run `oddao-release publish` to submit.")
    return 0


def cmd_publish(args: argparse.Namespace, cfg: ToolEnvConfig) -> int:
    ledger = build_ledger(cfg, submitter_key=_submitter_key(args, cfg))
    store = FileAttestationStore(cfg.signatures_dir)
    result = submit_publish(ledger=ledger, store=store, expected_chain_id=cfg.ledger.chain_id)
    _print_submitted("Release Published", result)
    print(f"\n{result.component} v{result.version} is now on-chain.")
    return 0


def cmd_sign_revoke(args: argparse.Namespace, cfg: ToolEnvConfig) -> int:
    request = build_request(
        SignRevokeRequest,
        component=args.component,
        version=args.version,
        reason=args.reason,
        key=args.key or cfg.signer_key,
    )
    store = FileAttestationStore(cfg.signatures_dir)
    result = sign_revoke(request, ledger=build_ledger(cfg), store=store)
    _print_signed("ODDAO Revocation Signature", result, store)
    print(f"\nCollect {result.threshold} signatures and run `oddao-release revoke` to submit.")
    return 0


def cmd_revoke(args: argparse.Namespace, cfg: ToolEnvConfig) -> int:
    request = build_request(
        RevokeRequest,
        component=args.component,
        version=args.version,
        reason=args.reason,
        key=args.key,
    )
    ledger = build_ledger(cfg, submitter_key=_submitter_key(args, cfg))
    store = FileAttestationStore(cfg.signatures_dir)
    result = submit_revoke(request, ledger=ledger, store=store, expected_chain_id=cfg.ledger.chain_id)
    _print_submitted("Release Revoked", result)
    print(f"\n{result.component} v{result.version} has been revoked.")
    return 0


def _print_digest(title: str, value: bytes, context: OperationContext) -> None:
    print(f"=== {title} ===")
    print(f"Registry:        {context.registry_address}")
    print(f"Chain ID:        {context.chain_id}")
    print(f"Operation Nonce: {context.nonce}")
    print(f"Digest:          {to_hex(value)}")


def cmd_min_version_digest(args: argparse.Namespace, cfg: ToolEnvConfig) -> int:
    component = (args.component or "").strip()
    version = (args.version or "").strip()
    if not component or not version:
        raise InputValidationError("component", "component and version must be non-empty")
    context = read_checked_context(build_ledger(cfg), cfg.ledger.chain_id)
    value = min_version_digest(
        component,
        version,
        nonce=context.nonce,
        chain_id=context.chain_id,
        registry_address=context.registry_address,
    )
    _print_digest("MIN_VERSION Digest", value, context)
    return 0


def cmd_signers_digest(args: argparse.Namespace, cfg: ToolEnvConfig) -> int:
    signers = [s.strip() for s in args.signers.split(",") if s.strip()]
    if not signers:
        raise InputValidationError("signers", "at least one signer address is required")
    if len({s.lower() for s in signers}) != len(signers):
        raise InputValidationError("signers", "duplicate signer address")
    if not 0 < args.threshold <= len(signers):
        raise InputValidationError("threshold", f"must be between 1 and {len(signers)}")
    context = read_checked_context(build_ledger(cfg), cfg.ledger.chain_id)
    value = signer_update_digest(
        signers,
        args.threshold,
        nonce=context.nonce,
        chain_id=context.chain_id,
        registry_address=context.registry_address,
    )
    _print_digest("UPDATE_SIGNERS Digest", value, context)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="oddao-release", description="ODDAO release attestation tooling.")
    parser.add_argument("--version-info", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("sign", help="Sign a release for publication.")
    p.add_argument("--component", required=True)
    p.add_argument("--version", required=True)
    p.add_argument("--hash", required=True, help="0x-prefixed 32-byte binary hash.")
    p.add_argument("--min-version", default="")
    p.add_argument("--changelog", "--changelog-cid", dest="changelog", default="")
    p.add_argument("--key", help="Signer private key (default: ODDAO_SIGNER_KEY).")
    p.set_defaults(func=cmd_sign)

    p = sub.add_parser("publish", help="Aggregate publish attestations and submit them.")
    p.add_argument("--submitter-key", help="Release manager key (default: ODDAO_SUBMITTER_KEY).")
    p.set_defaults(func=cmd_publish)

    p = sub.add_parser("sign-revoke", help="Sign a revocation.")
    p.add_argument("--component", required=True)
    p.add_argument("--version", required=True)
    p.add_argument("--reason", required=True)
    p.add_argument("--key", help="Signer private key (default: ODDAO_SIGNER_KEY).")
    p.set_defaults(func=cmd_sign_revoke)

    p = sub.add_parser("revoke", help="Aggregate revoke attestations and submit them.")
    p.add_argument("--component", required=True)
    p.add_argument("--version", required=True)
    p.add_argument("--reason", required=True)
    p.add_argument("--key", help="Also sign with this key before submitting.")
    p.add_argument("--submitter-key", help="Release manager key (default: ODDAO_SUBMITTER_KEY).")
    p.set_defaults(func=cmd_revoke)

    p = sub.add_parser("min-version-digest", help="Print the MIN_VERSION digest for the live nonce.")
    p.add_argument("--component", required=True)
    p.add_argument("--version", required=True)
    p.set_defaults(func=cmd_min_version_digest)

    p = sub.add_parser("signers-digest", help="Print the UPDATE_SIGNERS digest for the live nonce.")
    p.add_argument("--signers", required=True, help="Comma-separated signer addresses, in order.")
    p.add_argument("--threshold", required=True, type=int)
    p.set_defaults(func=cmd_signers_digest)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = load_tool_env()
    try:
        return args.func(args, cfg)
    except ReleaseError as exc:
        print(f"[oddao-release] {exc.category}: {exc.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
