"""Lokal localization backend."""
