"""
Tests for the CSV export.
"""

import csv
import io
from datetime import date

from prioritizer.export import CSV_COLUMNS, export_filename, export_to_csv
from prioritizer.models import Item, Note
from prioritizer.state import AppState


def parse(content: str) -> list[list[str]]:
    return list(csv.reader(io.StringIO(content)))


class TestExportFormat:
    def test_filename(self):
        assert export_filename(date(2024, 3, 7)) == "prioritizer-export-2024-03-07.csv"

    def test_header_only_without_items(self):
        content = export_to_csv([], AppState())
        assert parse(content) == [CSV_COLUMNS]
        assert content.endswith("\r\n")

    def test_unscored_item(self):
        item = Item(id="a", name="Plain", created_at="2024-01-02T03:04:05.123456")
        row = dict(zip(CSV_COLUMNS, parse(export_to_csv([item], AppState()))[1]))

        assert row["Rank"] == "1"
        assert row["Urgency"] == ""
        assert row["Urgency Title"] == ""
        assert row["Cost of Delay"] == "0.00"
        assert row["Confidence Weighted CD3"] == ""
        assert row["Active Status"] == "Active"
        assert row["Has Confidence Survey"] == "No"
        assert row["Created Date"] == "2024-01-02 03:04:05"

    def test_quoting_of_special_characters(self):
        item = Item(
            id="a",
            name='Say "hi", then leave',
            notes=[Note(text="line one\nline two"), Note(text="second")],
        )
        content = export_to_csv([item], AppState())

        assert '"Say ""hi"", then leave"' in content
        row = dict(zip(CSV_COLUMNS, parse(content)[1]))
        assert row["Item Name"] == 'Say "hi", then leave'
        assert row["Notes"] == "line one\nline two; second"
        assert row["Notes Count"] == "2"


class TestExportThroughService:
    def test_rows_follow_results_order(self, scored_service):
        _, content = scored_service.export_csv()
        rows = parse(content)[1:]

        assert [(r[0], r[1]) for r in rows] == [("1", "Gamma"), ("2", "Beta"), ("3", "Alpha")]
        gamma = dict(zip(CSV_COLUMNS, rows[0]))
        assert gamma["Urgency Title"] == "ASAP"
        assert gamma["Value Title"] == "MEH"
        assert gamma["Duration Title"] == "1-3d"
        assert gamma["CD3"] == "3.00"

    def test_manual_order_is_exported(self, scored_service):
        scored_service.reorder_item_sequence(scored_service.ids["Alpha"], "up")
        _, content = scored_service.export_csv()
        assert [r[1] for r in parse(content)[1:]] == ["Gamma", "Alpha", "Beta"]

    def test_inactive_and_survey_columns(self, scored_service):
        ids = scored_service.ids
        scored_service.set_item_inactive(ids["Beta"])
        scored_service.submit_confidence_survey(
            ids["Beta"],
            {
                "scopeConfidence": {"4": 1},
                "urgencyConfidence": {"4": 1},
                "valueConfidence": {"4": 1},
                "durationConfidence": {"4": 1},
            },
        )
        _, content = scored_service.export_csv()
        beta = dict(zip(CSV_COLUMNS, parse(content)[2]))

        assert beta["Active Status"] == "Inactive"
        assert beta["Has Confidence Survey"] == "Yes"
        # (1*0.9 * 2*0.9) / (1*0.9)
        assert beta["Confidence Weighted CD3"] == "1.80"

    def test_export_is_tracked(self, scored_service, events):
        scored_service.export_csv()
        assert events.events[-1] == ("Export CSV", {"rows": 3})
