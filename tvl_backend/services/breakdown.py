"""
Per-project asset breakdowns split by backing category.

Canonical entries are valued live from escrow balances and prices at the latest timestamp;
native and external entries come from the precomputed reports of the matching value type.
The three categories are merged side by side and never summed across each other.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Sequence

from tvl_backend.schemas.api import (
    CanonicalAssetBreakdown,
    EscrowBreakdown,
    NonCanonicalAssetBreakdown,
    ProjectAssetsBreakdown,
)
from tvl_backend.schemas.registry import ReportProject, Token
from tvl_backend.schemas.tvl import Balance, Price, RealProject, Report, ReportType
from tvl_backend.services.charts import USD_DECIMALS, as_number
from tvl_backend.services.grouping import group_by_project_and_asset, reduce_reports

CanonicalBreakdowns = Mapping[RealProject, List[CanonicalAssetBreakdown]]
NonCanonicalBreakdowns = Mapping[RealProject, List[NonCanonicalAssetBreakdown]]


@dataclass(frozen=True)
class CategorizedBreakdowns:
    external: NonCanonicalBreakdowns = field(default_factory=dict)
    native: NonCanonicalBreakdowns = field(default_factory=dict)
    canonical: CanonicalBreakdowns = field(default_factory=dict)


def _usd(amount: Decimal, price: float) -> float:
    return round(float(amount) * price, USD_DECIMALS)


def get_canonical_assets_breakdown(logger):
    def compute(
        balances: Iterable[Balance],
        prices: Iterable[Price],
        projects: Sequence[ReportProject],
        tokens: Iterable[Token],
    ) -> Dict[RealProject, List[CanonicalAssetBreakdown]]:
        price_by_asset = {price.asset_id: price.price_usd for price in prices}
        token_by_id = {token.id: token for token in tokens}
        balances_by_holder: Dict[str, List[Balance]] = {}
        for balance in balances:
            balances_by_holder.setdefault(balance.holder_address, []).append(balance)

        result: Dict[RealProject, List[CanonicalAssetBreakdown]] = {}
        for project in projects:
            # asset_id -> escrow address -> raw balance
            held: Dict[str, Dict[str, int]] = {}
            chains: Dict[str, str] = {}
            for escrow in project.escrows:
                for balance in balances_by_holder.get(escrow.address, []):
                    if balance.asset_id not in escrow.tokens or balance.timestamp < escrow.since_timestamp:
                        continue
                    per_escrow = held.setdefault(balance.asset_id, {})
                    per_escrow[escrow.address] = per_escrow.get(escrow.address, 0) + balance.balance
                    chains.setdefault(balance.asset_id, balance.chain_id)

            entries: List[CanonicalAssetBreakdown] = []
            for asset_id, per_escrow in held.items():
                token = token_by_id.get(asset_id)
                price = price_by_asset.get(asset_id)
                if token is None or price is None:
                    logger.warning(
                        "canonical_breakdown_asset_skipped",
                        project_id=project.project_id,
                        asset_id=asset_id,
                        missing="token" if token is None else "price",
                    )
                    continue
                escrows = []
                for address, raw in per_escrow.items():
                    amount = Decimal(raw).scaleb(-token.decimals)
                    escrows.append(EscrowBreakdown(escrow_address=address, balance=float(amount), usd_value=_usd(amount, price)))
                total = Decimal(sum(per_escrow.values())).scaleb(-token.decimals)
                entries.append(CanonicalAssetBreakdown(
                    asset_id=asset_id,
                    chain_id=chains[asset_id],
                    usd_price=price,
                    balance=float(total),
                    usd_value=_usd(total, price),
                    escrows=escrows,
                ))
            result[project.ref] = entries
        return result

    return compute


def get_non_canonical_assets_breakdown(
    reports: Iterable[Report],
    tokens: Iterable[Token],
    report_type: ReportType,
) -> Dict[RealProject, List[NonCanonicalAssetBreakdown]]:
    token_by_id = {token.id: token for token in tokens}
    matching = [r for r in reports if r.report_type == report_type and isinstance(r.project, RealProject)]

    result: Dict[RealProject, List[NonCanonicalAssetBreakdown]] = {}
    for project, by_asset in group_by_project_and_asset(matching).items():
        entries = []
        for asset_id, asset_reports in by_asset.items():
            token = token_by_id.get(asset_id)
            if token is None:
                continue
            raw_amount, raw_usd = reduce_reports(asset_reports)
            amount = as_number(raw_amount, token.decimals)
            usd_value = as_number(raw_usd, USD_DECIMALS)
            entries.append(NonCanonicalAssetBreakdown(
                asset_id=asset_id,
                chain_id=asset_reports[0].chain_id,
                usd_price=usd_value / amount if amount else 0.0,
                amount=amount,
                usd_value=usd_value,
            ))
        result[project] = entries
    return result


def group_and_merge_breakdowns(
    projects: Sequence[ReportProject],
    breakdowns: CategorizedBreakdowns,
) -> Dict[str, ProjectAssetsBreakdown]:
    """Every configured project gets an entry, empty categories included."""
    merged: Dict[str, ProjectAssetsBreakdown] = {}
    for project in projects:
        ref = project.ref
        merged[project.project_id] = ProjectAssetsBreakdown(
            canonical=list(breakdowns.canonical.get(ref, [])),
            native=list(breakdowns.native.get(ref, [])),
            external=list(breakdowns.external.get(ref, [])),
        )
    return merged
