"""
Core module for PySizeSpec.

Contains the size grids, the parameter store, the rate pipeline and the
projection engine.
"""

from pysizespec.core.errors import (
    SizeSpecError,
    InvalidGrid,
    ParamsInconsistent,
    ShapeMismatch,
    BadEffortShape,
    UnknownGear,
    BadSaveCadence,
    UnknownFunction,
    ProjectionError,
)
from pysizespec.core.grid import SizeGrid, make_size_grid, get_w_min_idx
from pysizespec.core.registry import (
    Registry,
    RATE_FUNCTIONS,
    RESOURCE_DYNAMICS,
    COMPONENT_FUNCTIONS,
    PRED_KERNELS,
    SELECTIVITY_FUNCTIONS,
)
from pysizespec.core.species import (
    validate_species_params,
    complete_species_params,
    validate_gear_params,
    example_species_params,
)
from pysizespec.core.params import (
    SpectrumParams,
    new_multispecies_params,
    validate_params,
    set_interaction,
    set_search_volume,
    set_max_intake_rate,
    set_metabolic_rate,
    set_ext_mort,
    set_ext_encounter,
    set_reproduction,
    set_fishing,
    set_resource,
    set_pred_kernel,
    get_pred_kernel,
    set_initial_values,
    set_rate_function,
    set_resource_dynamics,
    set_component,
    remove_component,
    set_metadata,
)
from pysizespec.core.rates import (
    RateBundle,
    get_rates,
    get_encounter,
    get_feeding_level,
    get_e_repro_and_growth,
    get_e_repro,
    get_e_growth,
    get_pred_rate,
    get_pred_mort,
    get_fmort_gear,
    get_fmort,
    get_mort,
    get_resource_mort,
    get_rdi,
    get_rdd,
)
from pysizespec.core.project import SpectrumSim, project

__all__ = [
    # Errors
    "SizeSpecError",
    "InvalidGrid",
    "ParamsInconsistent",
    "ShapeMismatch",
    "BadEffortShape",
    "UnknownGear",
    "BadSaveCadence",
    "UnknownFunction",
    "ProjectionError",
    # Grid
    "SizeGrid",
    "make_size_grid",
    "get_w_min_idx",
    # Registries
    "Registry",
    "RATE_FUNCTIONS",
    "RESOURCE_DYNAMICS",
    "COMPONENT_FUNCTIONS",
    "PRED_KERNELS",
    "SELECTIVITY_FUNCTIONS",
    # Species and gears
    "validate_species_params",
    "complete_species_params",
    "validate_gear_params",
    "example_species_params",
    # Parameter store
    "SpectrumParams",
    "new_multispecies_params",
    "validate_params",
    "set_interaction",
    "set_search_volume",
    "set_max_intake_rate",
    "set_metabolic_rate",
    "set_ext_mort",
    "set_ext_encounter",
    "set_reproduction",
    "set_fishing",
    "set_resource",
    "set_pred_kernel",
    "get_pred_kernel",
    "set_initial_values",
    "set_rate_function",
    "set_resource_dynamics",
    "set_component",
    "remove_component",
    "set_metadata",
    # Rates
    "RateBundle",
    "get_rates",
    "get_encounter",
    "get_feeding_level",
    "get_e_repro_and_growth",
    "get_e_repro",
    "get_e_growth",
    "get_pred_rate",
    "get_pred_mort",
    "get_fmort_gear",
    "get_fmort",
    "get_mort",
    "get_resource_mort",
    "get_rdi",
    "get_rdd",
    # Projection
    "SpectrumSim",
    "project",
]
