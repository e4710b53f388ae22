"""Mapping-token parsing and binding plans."""

from transfer_pipeline.mapping.binding import (
    Binding,
    BindingKind,
    BindingPlan,
    compile_binding_plan,
    parse_mapping_token,
)

__all__ = [
    "Binding",
    "BindingKind",
    "BindingPlan",
    "compile_binding_plan",
    "parse_mapping_token",
]
