"""Yemzo food-ordering backend."""
