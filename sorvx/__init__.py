"""Sorvx AI chat backend."""
