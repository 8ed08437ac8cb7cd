"""Physical constants and conversion factors used by derived metrics.

Defaults mirror the coaching workbook's Constants sheet. A baseline dataset
may override any of them through its ``constants`` object.
"""

from __future__ import annotations

from collections.abc import Mapping

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field


class PhysicsConstants(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    lb_to_kg: float = Field(default=0.45359237, alias="LB_TO_KG")
    in_to_cm: float = Field(default=2.54, alias="IN_TO_CM")
    ten_yd_m: float = Field(default=9.144, alias="TEN_YD_M")
    twenty_yd_m: float = Field(default=18.288, alias="TWENTY_YD_M")
    g: float = Field(default=9.81, alias="G")
    # Sayers et al. (1999) peak power: A * jump_cm + B * mass_kg + C
    sayers_a: float = Field(default=60.7, alias="SAYERS_A")
    sayers_b: float = Field(default=45.3, alias="SAYERS_B")
    sayers_c: float = Field(default=-2055.0, alias="SAYERS_C")
    ms_to_mph: float = Field(default=2.23694, alias="MS_TO_MPH")


DEFAULT_CONSTANTS = PhysicsConstants()


def constants_from_overrides(overrides: Mapping[str, float] | None) -> PhysicsConstants:
    """Build constants from a baseline's override map (workbook key names)."""
    if not overrides:
        return DEFAULT_CONSTANTS
    merged = {**DEFAULT_CONSTANTS.model_dump(by_alias=True), **overrides}
    constants = PhysicsConstants.model_validate(merged)
    logger.debug(f"Applied constant overrides: {sorted(overrides)}")
    return constants
