"""
PySizeSpec - Python multispecies size-spectrum modelling

Simulates size-structured fish communities coupled to a resource
spectrum under predation, growth, reproduction and multi-gear fishing.
"""

__version__ = "0.1.0"
__author__ = "PySizeSpec Development Team"

# Core imports
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
)
from pysizespec.core.species import example_species_params
from pysizespec.core.rates import RateBundle, get_rates
from pysizespec.core.project import SpectrumSim, project

__all__ = [
    # Version
    "__version__",
    "__author__",
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
    "example_species_params",
    # Simulation
    "RateBundle",
    "get_rates",
    "SpectrumSim",
    "project",
]
