"""
Argument bundles for the four engine calls.
Numbers are strict: "5" is rejected, not coerced to 5.0.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from constants import DOSING_CONSTANTS, DoseNotation
from models import ResolvedConcentration, ValidationVerdict, PreparationResult
from concentration import ConcentrationResolver
from dose_converter import DoseConverter
from safety import SafetyValidator
from planner import PreparationPlanner
from drug_database import DrugDatabase, VialRecord

# --- 1. STRICT INPUT SCHEMA ---

class ConcentrationRequest(BaseModel):
    vial: VialRecord
    dilution_ml: float = Field(DOSING_CONSTANTS.DEFAULT_DILUTION_ML, gt=0, strict=True, allow_inf_nan=False)

    def run(self) -> ResolvedConcentration:
        return ConcentrationResolver.resolve(self.vial.to_vial(), self.dilution_ml)

class ConcentrationRecord(BaseModel):
    mg_per_ml: Optional[float] = Field(None, gt=0, strict=True, allow_inf_nan=False)
    mcg_per_ml: Optional[float] = Field(None, gt=0, strict=True, allow_inf_nan=False)
    units_per_ml: Optional[float] = Field(None, gt=0, strict=True, allow_inf_nan=False)

class ConversionRequest(BaseModel):
    dose: float = Field(..., ge=0, strict=True, allow_inf_nan=False)
    notation: DoseNotation
    concentration: ConcentrationRecord
    weight_kg: Optional[float] = Field(None, gt=0, le=500, strict=True, allow_inf_nan=False)

    def run(self) -> float:
        conc = ResolvedConcentration(**self.concentration.model_dump())
        return DoseConverter.dose_to_ml_per_hr(self.dose, self.notation, conc, self.weight_kg)

class ValidationRequest(BaseModel):
    drug_id: str
    dose: float = Field(..., strict=True, allow_inf_nan=False)
    notation: DoseNotation

    def run(self, database: DrugDatabase) -> ValidationVerdict:
        return SafetyValidator.validate_dose(self.dose, self.notation, database.get(self.drug_id))

class PreparationRequest(BaseModel):
    drug_id: str = Field(..., description="Key in the drug database")
    dose: float = Field(..., ge=0, strict=True, allow_inf_nan=False)
    notation: DoseNotation
    weight_kg: Optional[float] = Field(None, gt=0, le=500, strict=True, allow_inf_nan=False,
                                       description="Required for per-kg notations")
    vial_index: Optional[int] = Field(None, ge=0, strict=True, description="Defaults to the drug's default vial")
    dilution_ml: float = Field(DOSING_CONSTANTS.DEFAULT_DILUTION_ML, gt=0, strict=True, allow_inf_nan=False)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "drug_id": "nitroglycerin", "dose": 50, "notation": "mcg/min",
            "weight_kg": 70.0, "vial_index": 0, "dilution_ml": 50.0
        }
    })

    def run(self, database: DrugDatabase) -> PreparationResult:
        # Capture the record now; a later reload must not affect this call
        drug = database.get(self.drug_id)
        return PreparationPlanner.suggest_preparation(
            drug, self.dose, self.notation,
            weight_kg=self.weight_kg,
            vial_index=self.vial_index,
            dilution_ml=self.dilution_ml
        )
