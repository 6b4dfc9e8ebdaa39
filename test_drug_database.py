import json
import os
import shutil
import tempfile
import unittest
from pathlib import Path

from pydantic import ValidationError

from drug_database import (
    DrugDatabase,
    DrugDatabaseError,
    DrugDatabaseNotLoadedError,
    DrugRecord,
    UnknownDrugError
)
from models import MassStrength, ActivityStrength, PremixedConcentration
from schemas import ConcentrationRequest, ConversionRequest, ValidationRequest, PreparationRequest

BUNDLED_DB = Path(__file__).resolve().parent / "data" / "drugs.json"

class TestDrugDatabase(unittest.TestCase):

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.tmp_dir, "drugs.json")
        self.records = {
            "dopamine": {
                "name": "Dopamine", "primary_unit": "mcg/kg/min",
                "dose_range": {"min": 2, "max": 20},
                "vials": [{"strength_mg": 200, "ampoule_volume_ml": 5}]
            }
        }
        self._write(self.records)

    def tearDown(self):
        shutil.rmtree(self.tmp_dir)

    def _write(self, data):
        with open(self.db_path, "w", encoding="utf-8") as fh:
            json.dump(data, fh)

    def test_01_not_loaded_state(self):
        db = DrugDatabase(self.db_path)
        self.assertFalse(db.is_loaded)
        with self.assertRaises(DrugDatabaseNotLoadedError):
            db.get("dopamine")
        with self.assertRaises(DrugDatabaseNotLoadedError):
            db.drug_ids()

    def test_02_load_is_idempotent(self):
        db = DrugDatabase(self.db_path)
        first = db.load()
        self.assertTrue(db.is_loaded)

        # A changed file is not re-read by a second load()
        self._write({})
        second = db.load()
        self.assertIs(first, second)
        self.assertEqual(db.drug_ids(), ["dopamine"])

    def test_03_reload_keeps_captured_records_intact(self):
        """A drug fetched before reload() is unaffected by the new mapping."""
        db = DrugDatabase(self.db_path)
        db.load()
        captured = db.get("dopamine")

        self.records["dopamine"]["dose_range"] = {"min": 5, "max": 10}
        self._write(self.records)
        db.reload()

        self.assertEqual(captured.dose_range.max, 20.0)
        self.assertEqual(db.get("dopamine").dose_range.max, 10.0)

    def test_04_unknown_drug(self):
        db = DrugDatabase.from_mapping(self.records)
        with self.assertRaises(UnknownDrugError):
            db.get("adrenaline")
        with self.assertRaises(KeyError):
            db.get("adrenaline")

    def test_05_malformed_records_fail_whole_load(self):
        bad_cases = [
            {"x": {"name": "X", "primary_unit": "mg/hr", "vials": []}},
            {"x": {"name": "X", "primary_unit": "mg/hr", "vials": [{"note": "label only"}]}},
            {"x": {"name": "X", "primary_unit": "mg/hr", "vials": [{"strength_mg": -5}]}},
            {"x": {"name": "X", "primary_unit": "mg/hr", "vials": [{"strength_mg": 5}],
                   "dose_range": {"min": 10, "max": 1}}},
            {"x": {"name": "X", "primary_unit": "mg/hr", "vials": [{"strength_mg": 5}],
                   "default_vial_index": 3}},
        ]
        for data in bad_cases:
            with self.subTest(data=data):
                data = dict(data, **self.records)
                with self.assertRaises(DrugDatabaseError):
                    DrugDatabase.from_mapping(data)

    def test_06_missing_or_corrupt_file(self):
        with self.assertRaises(DrugDatabaseError):
            DrugDatabase(os.path.join(self.tmp_dir, "missing.json")).load()

        with open(self.db_path, "w", encoding="utf-8") as fh:
            fh.write("{not json")
        with self.assertRaises(DrugDatabaseError):
            DrugDatabase(self.db_path).load()

    def test_07_bundled_database(self):
        """The shipped drugs.json covers every potency variant."""
        db = DrugDatabase(BUNDLED_DB)
        db.load()

        self.assertIn("nitroglycerin", db.drug_ids())
        self.assertIsInstance(db.get("nitroglycerin").vials[0].potency, MassStrength)
        self.assertIsInstance(db.get("heparin").vials[0].potency, ActivityStrength)
        self.assertIsInstance(db.get("norepinephrine").vials[1].potency, PremixedConcentration)

        options = db.vial_options("midazolam")
        self.assertEqual(options["default_index"], 1)
        self.assertEqual(options["labels"][1], "Midazolam 50 mg/10 ml")
        self.assertFalse(options["weight_based"])
        self.assertEqual(db.vial_options("heparin")["labels"][1], "5000 units")


class TestArgumentBundles(unittest.TestCase):

    def setUp(self):
        self.db = DrugDatabase(BUNDLED_DB)
        self.db.load()

    def test_01_preparation_request(self):
        request = PreparationRequest(drug_id="nitroglycerin", dose=50.0, notation="mcg/min",
                                     weight_kg=70.0, dilution_ml=50.0)
        result = request.run(self.db)
        self.assertAlmostEqual(result.ml_per_hr, 30.0)

    def test_02_insulin_request(self):
        """Insulin 50 units in 50 ml, 0.1 units/kg/hr for 70 kg -> 7 ml/hr."""
        request = PreparationRequest(drug_id="insulin", dose=0.1, notation="units/kg/hr", weight_kg=70.0)
        result = request.run(self.db)
        self.assertAlmostEqual(result.ml_per_hr, 7.0)

    def test_03_strict_numbers(self):
        with self.assertRaises(ValidationError):
            PreparationRequest(drug_id="nitroglycerin", dose="50", notation="mcg/min")
        with self.assertRaises(ValidationError):
            PreparationRequest(drug_id="nitroglycerin", dose=50.0, notation="mcg/min", dilution_ml=0.0)
        with self.assertRaises(ValidationError):
            PreparationRequest(drug_id="nitroglycerin", dose=50.0, notation="ml/hr")

    def test_04_other_bundles(self):
        conc = ConcentrationRequest(vial={"strength_units": 500.0}, dilution_ml=100.0).run()
        self.assertAlmostEqual(conc.units_per_ml, 5.0)

        rate = ConversionRequest(dose=5.0, notation="mcg/kg/min", weight_kg=70.0,
                                 concentration={"mcg_per_ml": 400.0}).run()
        self.assertAlmostEqual(rate, 52.5)

        verdict = ValidationRequest(drug_id="dopamine", dose=30.0, notation="mcg/kg/min").run(self.db)
        self.assertTrue(verdict.requires_override)

    def test_05_schema_examples(self):
        self.assertEqual(DrugRecord.model_json_schema()["example"]["name"], "Nitroglycerin")
        self.assertEqual(PreparationRequest.model_json_schema()["example"]["drug_id"], "nitroglycerin")
        # The documented example is itself a valid record
        DrugRecord.model_validate(DrugRecord.model_json_schema()["example"]).to_drug("nitroglycerin")

if __name__ == '__main__':
    unittest.main()
