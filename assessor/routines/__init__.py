"""Routine bundles shipped with the engine.

Modules here are not imported by the engine. The loader reads their source
(builtin://<module>) and compiles a fresh copy for every assessment run, the
same way it handles bundles fetched from S3.
"""
