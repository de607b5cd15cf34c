import math

from errors import ValidationError

# kg CO2e avoided per kg of collected waste
EMISSION_FACTORS = {
    "plastic": 0.54,
    "metal": 6.0,
    "glass": 0.09,
    "organic": 0.40,
    "electronic": 6.5,
    "mixed": 0.15,
    "hazardous": 0.30,
}

KG_PER_TREE_YEAR = 21.77
MILES_PER_KG = 2.42


def parse_weight(value):
    if value is None:
        raise ValidationError("estimatedWeightKg is required", code="MISSING_REQUIRED_FIELD")
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError("estimatedWeightKg must be a valid number", code="INVALID_WEIGHT_TYPE")
    if value <= 0:
        raise ValidationError("estimatedWeightKg must be a positive number", code="INVALID_WEIGHT_VALUE")
    return float(value)


def carbon_footprint(waste_type, weight_kg):
    factor = EMISSION_FACTORS.get(waste_type)
    if factor is None:
        raise ValidationError("No emission factor for waste type %s" % waste_type, code="INVALID_WASTE_TYPE")
    return weight_kg * factor


def carbon_summary(footprints):
    """Totals for a citizen's resolved reports, with everyday equivalents."""
    total = round(sum(footprints), 2)
    return {
        "totalCarbonFootprintKg": total,
        "reportCount": len(footprints),
        "equivalentTrees": round(total / KG_PER_TREE_YEAR, 2) if total > 0 else 0,
        "equivalentMiles": round(total * MILES_PER_KG, 2) if total > 0 else 0,
    }
