import os
import shutil
import tempfile
import unittest

from audit import InMemoryEventSink, JsonLinesEventSink, log_event, request_override
from constants import VERSION
from models import AuditRecord, OverrideRequest, ValidationVerdict, VerdictLevel, InvalidInputError

class RejectingSink:
    def append(self, record):
        return False

class TestAuditSink(unittest.TestCase):

    def setUp(self):
        self.block = ValidationVerdict(ok=False, level=VerdictLevel.HARD_BLOCK,
                                       message="Dose 13 mcg/min exceeds typical maximum (10). Override required.")

    def test_01_in_memory_sink_appends_in_order(self):
        sink = InMemoryEventSink()
        log_event(sink, "prep_calculated", {"drug_id": "nitroglycerin", "ml_per_hr": 30.0})
        log_event(sink, "pump_started")

        records = sink.records
        self.assertEqual([r.event_type for r in records], ["prep_calculated", "pump_started"])
        self.assertIsInstance(records[0], AuditRecord)
        self.assertEqual(records[0].payload["ml_per_hr"], 30.0)
        self.assertEqual(records[0].model_version, VERSION)

        # The returned list is a copy; the log itself is append-only
        records.clear()
        self.assertEqual(len(sink.records), 2)

    def test_02_override_captures_verdict(self):
        sink = InMemoryEventSink()
        request = request_override(sink, "  Titrating to MAP, consultant aware  ", "nurse-17", self.block)

        self.assertIsInstance(request, OverrideRequest)
        self.assertEqual(request.reason_text, "Titrating to MAP, consultant aware")
        self.assertEqual(request.verdict_level, "hard-block")
        self.assertIn("Override required", request.verdict_message)
        self.assertIs(sink.records[0], request)

    def test_03_override_requires_reason_and_user(self):
        sink = InMemoryEventSink()
        with self.assertRaises(InvalidInputError):
            request_override(sink, "   ", "nurse-17", self.block)
        with self.assertRaises(InvalidInputError):
            request_override(sink, "Consultant aware", "", self.block)
        self.assertEqual(sink.records, [])

    def test_04_json_lines_sink(self):
        tmp_dir = tempfile.mkdtemp()
        try:
            sink = JsonLinesEventSink(os.path.join(tmp_dir, "events.jsonl"))
            self.assertEqual(sink.read_all(), [])

            log_event(sink, "prep_calculated", {"drug_id": "heparin"})
            request_override(sink, "Consultant aware", "dr-4")

            lines = sink.read_all()
            self.assertEqual(len(lines), 2)
            self.assertEqual(lines[0]["kind"], "AuditRecord")
            self.assertEqual(lines[0]["payload"], {"drug_id": "heparin"})
            self.assertEqual(lines[1]["kind"], "OverrideRequest")
            self.assertIsNone(lines[1]["verdict_level"])
        finally:
            shutil.rmtree(tmp_dir)

    def test_05_rejected_append_still_returns_record(self):
        record = log_event(RejectingSink(), "prep_calculated")
        self.assertEqual(record.event_type, "prep_calculated")

if __name__ == '__main__':
    unittest.main()
