"""Candidate screening orchestration: runs, reconciliation and hiring pipeline."""

__version__ = "0.1.0"
