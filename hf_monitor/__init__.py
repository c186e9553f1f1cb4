"""Liqwid loan health factor monitor."""
