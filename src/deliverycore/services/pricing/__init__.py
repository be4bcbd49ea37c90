"""Delivery pricing exports."""

from .fees import DeliveryFeeCalculator, FeeQuote, fee_for_distance

__all__ = ["DeliveryFeeCalculator", "FeeQuote", "fee_for_distance"]
