# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
pathperm: static ownership & borrow permission analysis.

For every program point and access path of a function, the analyzer computes
whether Read, Write and Own permissions are available and reports uses of a
path that lack the required permission. Entry point:
`pathperm.analyzer.analyze_function`.
"""

__all__ = [
	"analyzer",
	"cfg_builder",
	"loan_tracker",
	"path_model",
	"permission_pass",
	"reporter",
	"signatures",
]
