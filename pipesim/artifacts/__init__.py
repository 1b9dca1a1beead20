"""Generated platform artifacts (PySpark, Spark SQL, notebooks, jobs, DLT, ADF, Terraform)."""

from .context import ArtifactContext, slugify
from .generator import SUPPORTED_FORMATS, generate_artifacts, get_renderer

__all__ = ["ArtifactContext", "SUPPORTED_FORMATS", "generate_artifacts", "get_renderer", "slugify"]
