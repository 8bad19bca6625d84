from __future__ import annotations

import json
import os
from pathlib import Path
from typing import List, Union

import bittensor as bt
from pydantic import ValidationError

from oddao_release.core.errors import InputValidationError
from oddao_release.core.schemas import Attestation, StoredAttestation
from oddao_release.store.base import AttestationStore, artifact_key


class FileAttestationStore(AttestationStore):
    """A directory of `*.json` artifacts, one file per signer and operation."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        if Path(key).name != key:
            raise ValueError(f"artifact key must be a bare file name: {key!r}")
        return self.directory / key

    def put(self, attestation: Attestation) -> str:
        self.directory.mkdir(parents=True, exist_ok=True)
        key = artifact_key(attestation)
        target = self.path_for(key)
        # Write-then-rename so a concurrent reader never sees a partial file.
        tmp = target.with_name(f".{key}.{os.getpid()}.tmp")
        tmp.write_text(attestation.to_json() + "\n", encoding="utf-8")
        os.replace(tmp, target)
        return key

    def list_all(self) -> List[StoredAttestation]:
        if not self.directory.is_dir():
            return []
        out: List[StoredAttestation] = []
        for path in sorted(self.directory.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                attestation = Attestation.model_validate(data)
            except (OSError, ValueError, ValidationError, InputValidationError) as exc:
                bt.logging.warning(f"Skipping unreadable attestation {path.name}: {exc}")
                continue
            out.append(StoredAttestation(key=path.name, attestation=attestation))
        return out

    def remove(self, key: str) -> None:
        self.path_for(key).unlink()
