"""Prediction composer exports."""

from .prediction_composer import BridgePrediction, compose_prediction, find_matching_cell

__all__ = ["BridgePrediction", "compose_prediction", "find_matching_cell"]
