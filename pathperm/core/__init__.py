"""
pathperm.core: shared spans, diagnostics, type core and options used across passes.

Modules:
  - span: Span / ProgramPoint
  - diagnostics: Violation records and the InternalError taxonomy
  - types_core: TypeId/TypeTable primitives (Copy vs heap-owning)
  - options: AnalyzerOptions
"""

__all__ = [
	"span",
	"diagnostics",
	"types_core",
	"options",
]
