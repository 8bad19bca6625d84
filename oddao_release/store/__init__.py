"""Attestation store: the shared mailbox signers drop their artifacts into."""

from oddao_release.store.base import AttestationStore, artifact_key
from oddao_release.store.files import FileAttestationStore
from oddao_release.store.memory import InMemoryAttestationStore

__all__ = ["AttestationStore", "FileAttestationStore", "InMemoryAttestationStore", "artifact_key"]
