"""Configuration and design snapshot models."""
