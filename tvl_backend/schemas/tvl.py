"""
Defines the row types read from storage and the tagged project identifier.
Synthetic rollup ids (all, bridges, layer2s) are a separate variant so they can never
be mistaken for a real project id during grouping or lookups.
"""
from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict, Field

UnixTime = int


class ReportType(str, Enum):
    CBV = "CBV"  # canonically bridged
    EBV = "EBV"  # externally bridged
    NMV = "NMV"  # natively minted


class AggregateKind(str, Enum):
    ALL = "all"
    BRIDGES = "bridges"
    LAYER2S = "layer2s"


class RealProject(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str

    @property
    def raw(self) -> str:
        return self.id

    def __str__(self):
        return self.id


class AggregateProject(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: AggregateKind

    @property
    def raw(self) -> str:
        return self.kind.value

    def __str__(self):
        return self.kind.value


ProjectRef = Union[RealProject, AggregateProject]

ALL = AggregateProject(kind=AggregateKind.ALL)
BRIDGES = AggregateProject(kind=AggregateKind.BRIDGES)
LAYER2S = AggregateProject(kind=AggregateKind.LAYER2S)
AGGREGATE_PROJECTS = (ALL, BRIDGES, LAYER2S)

RESERVED_PROJECT_IDS = frozenset(kind.value for kind in AggregateKind)


def project_ref(raw: str) -> ProjectRef:
    """Parses a stored project id into its tagged form."""
    if raw in RESERVED_PROJECT_IDS:
        return AggregateProject(kind=AggregateKind(raw))
    return RealProject(id=raw)


class Report(BaseModel):
    """
    A single valuation of one asset held by one project on one chain.
    amount is in the asset's base units, usd_value in USD cents.
    """
    model_config = ConfigDict(frozen=True)

    project: ProjectRef
    chain_id: str
    asset_id: str
    report_type: ReportType
    timestamp: UnixTime
    amount: int = Field(ge=0)
    usd_value: int = Field(ge=0)

    def combine(self, other: "Report") -> "Report":
        return self.model_copy(update={
            "amount": self.amount + other.amount,
            "usd_value": self.usd_value + other.usd_value,
        })


class AggregatedReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    project: ProjectRef
    report_type: ReportType
    timestamp: UnixTime
    usd_value: int = Field(ge=0)

    def combine(self, other: "AggregatedReport") -> "AggregatedReport":
        return self.model_copy(update={"usd_value": self.usd_value + other.usd_value})


class Balance(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: UnixTime
    holder_address: str
    asset_id: str
    chain_id: str
    balance: int


class Price(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: UnixTime
    asset_id: str
    price_usd: float
