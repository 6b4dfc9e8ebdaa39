"""
Infusion Engine: Drug Database Handle
=====================================
Loads the drug mapping (drug id -> record) once and hands out immutable
Drug objects. The engine never reads this module's state implicitly; callers
fetch a Drug and pass it in, so a reload between two calls cannot change a
calculation already in flight.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from models import Drug, DoseRange, Vial, is_weight_based_unit

logger = logging.getLogger("infusion-engine.database")

class DrugDatabaseError(RuntimeError):
    pass

class DrugDatabaseNotLoadedError(DrugDatabaseError):
    """Drugs were requested before load() completed."""
    pass

class UnknownDrugError(DrugDatabaseError, KeyError):
    pass

# --- RECORD SCHEMA (as stored in drugs.json) ---

class DoseRangeRecord(BaseModel):
    min: float = Field(..., ge=0, allow_inf_nan=False)
    max: float = Field(..., ge=0, allow_inf_nan=False)

class VialRecord(BaseModel):
    strength_mg: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    strength_units: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    mcg_per_ml: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    ampoule_volume_ml: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    note: Optional[str] = None

    def to_vial(self) -> Vial:
        return Vial.from_fields(
            strength_mg=self.strength_mg,
            strength_units=self.strength_units,
            mcg_per_ml=self.mcg_per_ml,
            ampoule_volume_ml=self.ampoule_volume_ml,
            note=self.note
        )

class DrugRecord(BaseModel):
    name: str
    primary_unit: str = Field(..., min_length=1, description="Canonical dose notation, e.g. mcg/kg/min")
    dose_range: Optional[DoseRangeRecord] = None
    vials: List[VialRecord] = Field(..., min_length=1)
    default_vial_index: int = Field(0, ge=0)
    max_rate_mcg_per_min: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    notes: str = ""

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "Nitroglycerin", "primary_unit": "mcg/min",
            "dose_range": {"min": 5, "max": 200},
            "vials": [{"strength_mg": 5, "ampoule_volume_ml": 5, "note": "Nitroglycerin 5 mg/5 ml"}],
            "max_rate_mcg_per_min": 400,
            "notes": "Use non-PVC tubing."
        }
    })

    @field_validator("default_vial_index")
    @classmethod
    def _index_within_vials(cls, v, info):
        vials = info.data.get("vials") or []
        if vials and v >= len(vials):
            raise ValueError(f"default_vial_index {v} but only {len(vials)} vial(s)")
        return v

    def to_drug(self, drug_id: str) -> Drug:
        rng = DoseRange(self.dose_range.min, self.dose_range.max) if self.dose_range else None
        return Drug(
            drug_id=drug_id,
            name=self.name,
            primary_unit=self.primary_unit,
            vials=tuple(v.to_vial() for v in self.vials),
            dose_range=rng,
            max_rate_mcg_per_min=self.max_rate_mcg_per_min,
            notes=self.notes,
            default_vial_index=self.default_vial_index
        )

def parse_drug_mapping(data: dict) -> Dict[str, Drug]:
    """All-or-nothing: one malformed record fails the whole mapping."""
    if not isinstance(data, dict):
        raise DrugDatabaseError(f"Drug database must be a mapping, got {type(data).__name__}")
    drugs = {}
    for drug_id, raw in data.items():
        try:
            drugs[drug_id] = DrugRecord.model_validate(raw).to_drug(drug_id)
        except (ValidationError, ValueError) as e:
            raise DrugDatabaseError(f"Invalid record for '{drug_id}': {e}") from e
    return drugs


class DrugDatabase:
    """
    Handle on the drug mapping. load() is idempotent; reload() swaps the
    whole mapping at once.
    """

    def __init__(self, path: Union[str, Path, None] = None):
        self.path = Path(path) if path is not None else None
        self._drugs: Optional[Dict[str, Drug]] = None

    @classmethod
    def from_mapping(cls, data: dict) -> "DrugDatabase":
        db = cls()
        db._drugs = parse_drug_mapping(data)
        return db

    @property
    def is_loaded(self) -> bool:
        return self._drugs is not None

    def load(self) -> Dict[str, Drug]:
        if self._drugs is not None:
            return self._drugs
        self._drugs = self._read()
        return self._drugs

    def reload(self) -> Dict[str, Drug]:
        self._drugs = self._read()
        return self._drugs

    def _read(self) -> Dict[str, Drug]:
        if self.path is None:
            raise DrugDatabaseError("No database path configured")
        try:
            with open(self.path, encoding="utf-8") as fh:
                drugs = parse_drug_mapping(json.load(fh))
        except (OSError, json.JSONDecodeError, DrugDatabaseError) as e:
            logger.error(f"Failed to load drugs DB from {self.path}: {e}")
            if isinstance(e, DrugDatabaseError):
                raise
            raise DrugDatabaseError(f"Failed to load drugs DB: {e}") from e
        logger.info(f"Loaded {len(drugs)} drugs from {self.path}")
        return drugs

    def _require_loaded(self) -> Dict[str, Drug]:
        if self._drugs is None:
            raise DrugDatabaseNotLoadedError("Drug database not loaded. Call load() first.")
        return self._drugs

    def get(self, drug_id: str) -> Drug:
        drugs = self._require_loaded()
        try:
            return drugs[drug_id]
        except KeyError:
            raise UnknownDrugError(f"Unknown drug: {drug_id!r}") from None

    def drug_ids(self) -> List[str]:
        return list(self._require_loaded().keys())

    def vial_options(self, drug_id: str) -> dict:
        """Labels for a vial picker plus the index to preselect."""
        drug = self.get(drug_id)
        return {
            "labels": [v.label for v in drug.vials],
            "default_index": drug.default_vial_index,
            "weight_based": is_weight_based_unit(drug.primary_unit)
        }
