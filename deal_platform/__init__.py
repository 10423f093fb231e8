"""Deal Platform — deterministic company valuation and deal-attractiveness scoring."""
from .types import *
from .formatting import *
from .exceptions import DealPlatformError, ValidationError, ReferenceDataError
from .reference import (
    ExactSeries,
    ThresholdSeries,
    ReferenceSnapshot,
    load_reference_snapshot,
)
from .variants import VariantConfig, FREE, STANDARD, ENTERPRISE, VARIANTS, get_variant_config
from .pipeline import run_valuation, value_free, value_standard, value_enterprise
from .log import configure_logging
