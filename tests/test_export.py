import io

from openpyxl import load_workbook

from quota_transformer.export import (
    export_filename,
    headers_for,
    sorted_groups,
    summarize,
    to_html,
    to_markdown,
    to_records,
    to_xlsx_bytes,
)
from quota_transformer.models import TransformedRow, View
from quota_transformer.normalize import transform_text

TEXT = "\n".join([
    "RDQuota,UTC Ticket,Deployment Constraints,Event ID,Reason,Subscription ID,SKU,Region",
    "Q-2,RI Enablement/Whitelisting,,4,Abandoned,sub-2,D4,East US",
    "Q-1,Region Limit Increase,,8,-,sub-1,D2,West US (WUS)",
    "Q-3,RI Enablement/Whitelisting,,4,-,sub-3,D8,East US",
])


def test_headers_for_views():
    assert headers_for(View.DEFAULT)[0] == "Subscription ID"
    assert len(headers_for(View.DEFAULT)) == 7
    assert headers_for(View.RDQUOTA)[:2] == ["RDQuota", "Subscription ID"]


def test_records_project_onto_headers():
    row = TransformedRow(subscription_id="s", request_type="Quota Increase", original_id="X-1")
    default = to_records([row], headers_for(View.DEFAULT))[0]
    rdquota = to_records([row], headers_for(View.RDQUOTA))[0]

    assert "Original ID" not in default
    assert default["Zone"] == "N/A"
    assert rdquota["RDQuota"] == "X-1"
    assert list(rdquota) == headers_for(View.RDQUOTA)


def test_sorted_groups_and_summary():
    result = transform_text(TEXT)
    groups = sorted_groups(result)

    assert list(groups) == ["Region Limit Increase", "Reserved Instances"]
    assert [row.original_id for row in groups["Reserved Instances"]] == ["Q-2", "Q-3"]

    summary = summarize(result, View.RDQUOTA)
    assert (summary.rows, summary.categories, summary.columns) == (3, 2, 8)


def test_markdown_and_html():
    headers = ["A", "B"]
    records = [{"A": "1", "B": "<x>"}, {"A": "2"}]

    assert to_markdown(headers, records) == "\n".join([
        "| **A** | **B** |",
        "|:---:|:---:|",
        "| 1 | <x> |",
        "| 2 |  |",
    ])

    html = to_html(headers, records)
    assert html.startswith("<table")
    assert html.count("<tr>") == 3
    assert "&lt;x&gt;" in html


def test_xlsx_round_trip_values():
    result = transform_text(TEXT)
    headers = headers_for(View.DEFAULT)
    data = to_xlsx_bytes(headers, to_records(result.rows, headers))

    ws = load_workbook(io.BytesIO(data)).active
    rows = list(ws.iter_rows(values_only=True))
    assert list(rows[0]) == headers
    assert rows[2][3] == "West US"
    assert rows[1][5] == "4"


def test_export_filename():
    assert export_filename(View.DEFAULT) == "Unified_Table.xlsx"
    assert export_filename(View.RDQUOTA) == "Unified_Table_by_RDQuota.xlsx"
    assert export_filename(View.DEFAULT, "AZ Enablement/Whitelisting") == "AZ_Enablement_Whitelisting.xlsx"


def test_xlsx_keeps_formula_like_values_as_text():
    headers = ["Subscription ID", "Region"]
    records = [{"Subscription ID": "=HYPERLINK(1)", "Region": "East\x01 US"}]

    ws = load_workbook(io.BytesIO(to_xlsx_bytes(headers, records))).active
    assert ws["A2"].data_type == "s"
    assert ws["A2"].value == "=HYPERLINK(1)"
    assert ws["B2"].value == "East US"


def test_sorted_groups_ignores_case():
    text = "\n".join([
        "ID,UTC Ticket,Deployment Constraints,Event ID,Reason,Subscription ID,SKU,Region",
        "1,custom request,,4,-,sub-1,D2,East US",
        "2,AZ Enablement/Whitelisting,,4,-,sub-2,D2,East US",
        "3,Quota Increase,,4,-,sub-3,D2,East US",
    ])
    assert list(sorted_groups(transform_text(text))) == [
        "custom request",
        "Quota Increase",
        "Zonal Enablement",
    ]
