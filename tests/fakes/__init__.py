"""Test doubles for the command layer."""
