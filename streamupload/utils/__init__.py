"""Utilities for streamupload module."""
