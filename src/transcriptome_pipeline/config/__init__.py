from .loader import load_config, load_config_with_overrides
from .schema import (
    DEFAULT_UNINFORMATIVE,
    ExecutablePaths,
    ExpressionSettings,
    FrameSelectionSettings,
    LookupPaths,
    OntologySettings,
    OutputSettings,
    PipelineConfig,
    SelectionPolicySettings,
    SimilaritySearchSettings,
)

__all__ = [
    "load_config",
    "load_config_with_overrides",
    "DEFAULT_UNINFORMATIVE",
    "ExecutablePaths",
    "ExpressionSettings",
    "FrameSelectionSettings",
    "LookupPaths",
    "OntologySettings",
    "OutputSettings",
    "PipelineConfig",
    "SelectionPolicySettings",
    "SimilaritySearchSettings",
]
