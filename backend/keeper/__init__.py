"""Keeper job that drives round transitions."""
