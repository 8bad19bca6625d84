from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import bittensor as bt
from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_account.signers.local import LocalAccount
from eth_utils import keccak, to_checksum_address, to_hex
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from oddao_release.core.encoding import normalize_hash
from oddao_release.core.errors import LedgerRejectionError
from oddao_release.core.schemas import ReleaseRecord
from oddao_release.ledger.base import LedgerClient, Receipt


_RELEASE_INFO = {
    "name": "",
    "type": "tuple",
    "components": [
        {"name": "version", "type": "string"},
        {"name": "binaryHash", "type": "bytes32"},
        {"name": "minimumVersion", "type": "string"},
        {"name": "changelogCID", "type": "string"},
        {"name": "publishedAt", "type": "uint256"},
        {"name": "publishedBy", "type": "address"},
        {"name": "revoked", "type": "bool"},
        {"name": "revokeReason", "type": "string"},
    ],
}


def _view(name: str, inputs: List[Dict[str, str]], outputs: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"type": "function", "name": name, "stateMutability": "view", "inputs": inputs, "outputs": outputs}


def _write(name: str, inputs: List[Dict[str, str]]) -> Dict[str, Any]:
    return {"type": "function", "name": name, "stateMutability": "nonpayable", "inputs": inputs, "outputs": []}


REGISTRY_ABI: List[Dict[str, Any]] = [
    _view("operationNonce", [], [{"name": "", "type": "uint256"}]),
    _view("getSigners", [], [{"name": "", "type": "address[]"}]),
    _view("signerThreshold", [], [{"name": "", "type": "uint256"}]),
    _view(
        "getRelease",
        [{"name": "component", "type": "string"}, {"name": "version", "type": "string"}],
        [_RELEASE_INFO],
    ),
    _write(
        "publishRelease",
        [
            {"name": "component", "type": "string"},
            {"name": "version", "type": "string"},
            {"name": "binaryHash", "type": "bytes32"},
            {"name": "minVersion", "type": "string"},
            {"name": "changelogCID", "type": "string"},
            {"name": "nonce", "type": "uint256"},
            {"name": "signatures", "type": "bytes[]"},
        ],
    ),
    _write(
        "revokeRelease",
        [
            {"name": "component", "type": "string"},
            {"name": "version", "type": "string"},
            {"name": "reason", "type": "string"},
            {"name": "nonce", "type": "uint256"},
            {"name": "signatures", "type": "bytes[]"},
        ],
    ),
]

# Custom errors the registry reverts with, keyed by 4-byte selector.
_ERROR_SIGNATURES = (
    "StaleNonce()",
    "InsufficientSignatures()",
    "InvalidSignature()",
    "VersionNotFound()",
    "VersionAlreadyRevoked()",
    "DuplicateVersion()",
    "EmptyComponent()",
    "EmptyVersion()",
    "EmptyBinaryHash()",
    "InvalidThreshold()",
    # OpenZeppelin AccessControl: submitter lacks the release-manager role.
    "AccessControlUnauthorizedAccount(address,bytes32)",
    "AccessControlBadConfirmation()",
)
KNOWN_ERRORS: Dict[str, str] = {
    to_hex(keccak(text=sig)[:4]): sig.split("(", 1)[0] for sig in _ERROR_SIGNATURES
}

# Solidity `require(cond, "reason")` / `revert("reason")`.
ERROR_STRING_SELECTOR = to_hex(keccak(text="Error(string)")[:4])


def _revert_data(exc: Exception) -> Optional[str]:
    data = getattr(exc, "data", None)
    if isinstance(data, dict):
        data = data.get("data")
    if isinstance(data, (bytes, bytearray)):
        data = to_hex(data)
    if isinstance(data, str) and data.startswith("0x") and len(data) >= 10:
        return data.lower()
    return None


def decode_revert(exc: Exception) -> str:
    """Best readable reason for a revert.

    Known custom errors map to their name (arguments dropped), `Error(string)`
    to its text. Anything else falls back to the message web3 decoded, then
    to the raw revert data.
    """
    data = _revert_data(exc)
    message = getattr(exc, "message", None)
    if data is None:
        return str(message or exc)

    selector = data[:10]
    name = KNOWN_ERRORS.get(selector)
    if name:
        return name
    if selector == ERROR_STRING_SELECTOR:
        try:
            (reason,) = abi_decode(["string"], bytes.fromhex(data[10:]))
            return reason
        except (DecodingError, ValueError):
            bt.logging.debug(f"Undecodable Error(string) payload: {data}")
    # ContractCustomError repeats the raw data as its message.
    if isinstance(message, str) and message and not message.startswith("0x"):
        return message
    return data


def record_from_tuple(component: str, version: str, raw: Sequence[Any]) -> ReleaseRecord:
    (
        stored_version,
        binary_hash,
        min_version,
        changelog,
        published_at,
        published_by,
        revoked,
        revoke_reason,
    ) = raw
    return ReleaseRecord(
        component=component,
        version=stored_version or version,
        binary_hash="0x" + bytes(binary_hash).hex(),
        min_version=min_version,
        changelog_reference=changelog,
        published_at=int(published_at),
        publisher=to_checksum_address(published_by),
        revoked=bool(revoked),
        revoke_reason=revoke_reason,
    )


class Web3LedgerClient(LedgerClient):
    """UpdateRegistry over JSON-RPC; transactions are signed locally."""

    def __init__(
        self,
        rpc_url: str,
        registry_address: str,
        *,
        account: Optional[LocalAccount] = None,
        rpc_timeout_s: float = 10.0,
        confirm_timeout_s: float = 120.0,
        w3: Optional[Web3] = None,
    ):
        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": rpc_timeout_s}))
        self._registry = to_checksum_address(registry_address)
        self.contract = self.w3.eth.contract(address=self._registry, abi=REGISTRY_ABI)
        self.account = account
        self.confirm_timeout_s = confirm_timeout_s

    @property
    def registry_address(self) -> str:
        return self._registry

    @property
    def submitter(self) -> str:
        if self.account is None:
            raise RuntimeError("No submitter key configured (set ODDAO_SUBMITTER_KEY).")
        return self.account.address

    def chain_id(self) -> int:
        return int(self.w3.eth.chain_id)

    def current_nonce(self) -> int:
        return int(self.contract.functions.operationNonce().call())

    def signers(self) -> List[str]:
        return [to_checksum_address(a) for a in self.contract.functions.getSigners().call()]

    def threshold(self) -> int:
        return int(self.contract.functions.signerThreshold().call())

    def get_release(self, component: str, version: str) -> ReleaseRecord:
        try:
            raw = self.contract.functions.getRelease(component, version).call()
        except ContractLogicError as exc:
            reason = decode_revert(exc)
            if reason == "VersionNotFound":
                return ReleaseRecord(component=component, version=version)
            raise LedgerRejectionError(reason)
        return record_from_tuple(component, version, raw)

    def _transact(self, fn) -> Receipt:
        sender = self.submitter
        try:
            tx = fn.build_transaction(
                {
                    "from": sender,
                    "nonce": self.w3.eth.get_transaction_count(sender),
                    "chainId": self.chain_id(),
                }
            )
        except ContractLogicError as exc:
            # Gas estimation runs the call, so reverts surface here before anything is sent.
            raise LedgerRejectionError(decode_revert(exc))

        signed = self.account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        bt.logging.info(f"Submitted {fn.fn_name} tx {to_hex(tx_hash)}")
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.confirm_timeout_s)
        except TimeExhausted:
            raise LedgerRejectionError(
                f"transaction {to_hex(tx_hash)} not confirmed within {self.confirm_timeout_s:.0f}s",
                tx_hash=to_hex(tx_hash),
            )
        if int(receipt["status"]) != 1:
            raise LedgerRejectionError("transaction reverted", tx_hash=to_hex(tx_hash))
        return {
            "transactionHash": to_hex(receipt["transactionHash"]),
            "blockNumber": int(receipt["blockNumber"]),
            "status": int(receipt["status"]),
        }

    def publish_release(
        self,
        component: str,
        version: str,
        binary_hash: str,
        min_version: str,
        changelog_reference: str,
        nonce: int,
        signatures: Sequence[str],
    ) -> Receipt:
        fn = self.contract.functions.publishRelease(
            component,
            version,
            normalize_hash(binary_hash),
            min_version,
            changelog_reference,
            int(nonce),
            [Web3.to_bytes(hexstr=s) for s in signatures],
        )
        return self._transact(fn)

    def revoke_release(
        self,
        component: str,
        version: str,
        reason: str,
        nonce: int,
        signatures: Sequence[str],
    ) -> Receipt:
        fn = self.contract.functions.revokeRelease(
            component,
            version,
            reason,
            int(nonce),
            [Web3.to_bytes(hexstr=s) for s in signatures],
        )
        return self._transact(fn)
