from tvl_backend.schemas.api import DetailedTvlApiResponse
from tvl_backend.schemas.registry import Token
from tvl_backend.schemas.tvl import ALL, BRIDGES, AggregatedReport, RealProject, Report, ReportType
from tvl_backend.services.charts import (
    AGGREGATED_CHART_TYPES,
    as_number,
    generate_detailed_tvl_api_response,
    get_aggregated_chart_data,
    get_project_asset_chart_data,
)
from tvl_backend.services.grouping import group_by_project_and_asset, group_by_project_and_timestamp

P = RealProject(id="arbitrum")
GHOST = RealProject(id="ghost")
USDC = Token(id="usdc-ethereum", symbol="USDC", decimals=6, chain_id="ethereum")
ETH = Token(id="eth-ethereum", symbol="ETH", decimals=18, chain_id="ethereum")


def agg(project, report_type, ts, usd):
    return AggregatedReport(project=project, report_type=report_type, timestamp=ts, usd_value=usd)


def report(asset_id, report_type, usd, amount, ts=7200, project=P):
    return Report(
        project=project, chain_id="ethereum", asset_id=asset_id, report_type=report_type,
        timestamp=ts, amount=amount, usd_value=usd,
    )


def test_as_number_scales_without_extra_rounding():
    assert as_number(123456789, 6) == 123.456789
    assert as_number(5, 2) == 0.05
    assert as_number(0, 18) == 0.0


def test_aggregated_chart_rows_are_sorted_and_split_by_type():
    grouped = group_by_project_and_timestamp([
        agg(P, ReportType.CBV, 7200, 3000),
        agg(P, ReportType.EBV, 7200, 2000),
        agg(P, ReportType.NMV, 3600, 150),
    ])

    rows = get_aggregated_chart_data(grouped[P])

    assert rows == [
        [3600, 1.5, 0.0, 0.0, 1.5],
        [7200, 50.0, 30.0, 20.0, 0.0],
    ]


def test_detailed_response_only_contains_requested_projects():
    series = group_by_project_and_timestamp([
        agg(P, ReportType.CBV, 3600, 100),
        agg(ALL, ReportType.CBV, 3600, 400),
        agg(BRIDGES, ReportType.EBV, 3600, 10),
        agg(GHOST, ReportType.CBV, 3600, 999),
    ])
    latest = group_by_project_and_asset([report("usdc-ethereum", ReportType.CBV, 100, 1_000_000, project=GHOST)])

    response = generate_detailed_tvl_api_response(series, series, series, latest, [P], [USDC])

    assert list(response.projects) == ["arbitrum"]
    assert response.projects["arbitrum"].charts.hourly.types == AGGREGATED_CHART_TYPES
    assert response.projects["arbitrum"].charts.daily.data == [[3600, 1.0, 1.0, 0.0, 0.0]]
    assert response.combined.hourly.data == [[3600, 4.0, 4.0, 0.0, 0.0]]
    assert response.bridges.six_hourly.data == [[3600, 0.1, 0.0, 0.1, 0.0]]
    assert response.layers2s.hourly.data == []
    assert response.projects["arbitrum"].tokens == []


def test_latest_tokens_are_deduplicated_across_value_types():
    latest = group_by_project_and_asset([
        report("usdc-ethereum", ReportType.CBV, 3000, 30_000_000),
        report("usdc-ethereum", ReportType.EBV, 2000, 20_000_000),
        report("eth-ethereum", ReportType.CBV, 9000, 3 * 10**18),
        report("unknown-asset", ReportType.NMV, 1, 1),
    ])

    response = generate_detailed_tvl_api_response({}, {}, {}, latest, [P], [USDC, ETH])

    tokens = response.projects["arbitrum"].tokens
    assert [t.asset_id for t in tokens] == ["eth-ethereum", "usdc-ethereum"]
    usdc = tokens[1]
    assert usdc.usd_value == 50.0
    assert usdc.amount == 50.0
    assert usdc.asset_type == [ReportType.CBV, ReportType.EBV]
    assert tokens[0].amount == 3.0


def test_detailed_response_serializes_with_camel_case():
    response = generate_detailed_tvl_api_response({}, {}, {}, {}, [P], [])

    payload = response.model_dump(by_alias=True)

    assert set(payload["combined"]) == {"hourly", "sixHourly", "daily"}


def test_asset_chart_data_merges_rows_sharing_a_timestamp():
    rows = [
        report("usdc-ethereum", ReportType.CBV, 200, 2_000_000, ts=7200),
        report("usdc-ethereum", ReportType.CBV, 0, 0, ts=3600),
        report("usdc-ethereum", ReportType.CBV, 300, 3_000_000, ts=7200),
    ]

    assert get_project_asset_chart_data(rows, USDC.decimals) == [
        [3600, 0.0, 0.0],
        [7200, 5.0, 5.0],
    ]


def test_detailed_response_top_level_keys():
    response = generate_detailed_tvl_api_response({}, {}, {}, {}, [P], [])

    assert set(response.model_dump(by_alias=True)) == {"combined", "bridges", "layers2s", "projects"}
    assert {field.alias for field in DetailedTvlApiResponse.model_fields.values()} == {
        "combined", "bridges", "layers2s", "projects",
    }
