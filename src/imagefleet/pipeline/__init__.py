"""
Pipeline module for imagefleet image builds.

Provides the per-image stages (repository sync, tag computation, build and
push) and the batch runner that drives them across a manifest.
"""
