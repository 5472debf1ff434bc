from .resolution import CallReport, Outcome, ResolutionOrchestrator

__all__ = ["CallReport", "Outcome", "ResolutionOrchestrator"]
