"""fix-explorer package."""

from . import (
    analysis,
    ast_index,
    bank,
    batch,
    codec,
    config,
    downstream,
    explorer,
    graph,
    injector,
    logging,
    main,
    regions,
    types,
    verifier,
    vcs,
)  # noqa: F401

__all__ = [
    "analysis",
    "ast_index",
    "bank",
    "batch",
    "codec",
    "config",
    "downstream",
    "explorer",
    "graph",
    "injector",
    "logging",
    "main",
    "regions",
    "types",
    "verifier",
    "vcs",
]
