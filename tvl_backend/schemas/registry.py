"""
Project and token configuration the API serves against.
The registry fingerprint is compared with the hash stored next to every aggregated report
to decide whether the stored aggregates were built from the active configuration.
"""
import hashlib
import json
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tvl_backend.schemas.tvl import RESERVED_PROJECT_IDS, RealProject, UnixTime


class RegistryError(Exception):
    """Raised when the registry file is missing or malformed."""


class Token(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    symbol: str
    decimals: int = Field(ge=0)
    chain_id: str


class Escrow(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    since_timestamp: UnixTime = 0
    tokens: List[str] = Field(default_factory=list)

    @field_validator("address")
    def lowercase_address(cls, v):
        return v.lower()


class ReportProject(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_id: str
    type: Literal["layer2", "bridge"]
    escrows: List[Escrow] = Field(default_factory=list)

    @field_validator("project_id")
    def not_reserved(cls, v):
        if v in RESERVED_PROJECT_IDS:
            raise ValueError(f"project id '{v}' is reserved for aggregates")
        return v

    @property
    def ref(self) -> RealProject:
        return RealProject(id=self.project_id)


class Registry(BaseModel):
    projects: List[ReportProject] = Field(default_factory=list)
    tokens: List[Token] = Field(default_factory=list)

    def find_token(self, asset_id: str) -> Optional[Token]:
        return next((t for t in self.tokens if t.id == asset_id), None)

    def find_project(self, project_id: str) -> Optional[ReportProject]:
        return next((p for p in self.projects if p.project_id == project_id), None)

    def config_hash(self) -> str:
        payload = json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def load_registry(path: str) -> Registry:
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise RegistryError(f"registry file not found: {path}") from e
    try:
        return Registry.model_validate_json(raw)
    except ValidationError as e:
        raise RegistryError(f"invalid registry file {path}: {e}") from e
