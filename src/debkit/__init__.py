from .dsl import feature, profile, sh, step, FeatureBuilder, build
from .runner import ConvergenceEngine
from .model import ApplyResult, CheckResult, Feature, Outcome, Profile, RunReport, RunStatus, Step

__all__ = [
    "feature", "profile", "sh", "step", "FeatureBuilder", "build", "ConvergenceEngine",
    "ApplyResult", "CheckResult", "Feature", "Outcome", "Profile", "RunReport", "RunStatus", "Step",
]
