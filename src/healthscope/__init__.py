"""
healthscope - Health-scored observability and divergence analysis.

Components emit health-scored events while they run. A separate batch
assessment later parses those events, rebuilds per-component health,
detects where observed impacts diverged from declared expectations, and
proposes (but never executes) a restoration route.

Example usage:
    from healthscope import HealthEmitter

    emitter = HealthEmitter("validate")
    emitter.declare_health_total(47)
    emitter.check("file-exists", True, 10)
    emitter.check("syntax-ok", True, 30)
    emitter.success("done", 7)

    # Later, from a different process:
    #   $ healthscope --component validate
"""

__version__ = "0.1.0"
__all__ = [
    "HealthEmitter",
    "StateInspector",
    "SemanticMetadata",
    "run_assessment",
    "__version__",
]


# Lazy imports keep `import healthscope` cheap for emitting components
def __getattr__(name: str):
    if name == "HealthEmitter":
        from healthscope.emission.emitter import HealthEmitter
        return HealthEmitter
    if name == "StateInspector":
        from healthscope.emission.inspector import StateInspector
        return StateInspector
    if name == "SemanticMetadata":
        from healthscope.models import SemanticMetadata
        return SemanticMetadata
    if name == "run_assessment":
        from healthscope.analysis.pipeline import run_assessment
        return run_assessment
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
