"""Shared models, configuration and utilities for the export pipeline."""
