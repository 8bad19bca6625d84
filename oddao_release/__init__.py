"""ODDAO release attestation tooling.

Signers attest to a release (or a revocation) off-chain, the attestations
accumulate in a shared store, and a release manager aggregates them into a
single quorum-backed submission to the on-chain UpdateRegistry.
"""

__version__ = "0.1.0"
