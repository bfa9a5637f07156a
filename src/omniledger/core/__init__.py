"""Configuration, logging, errors and shared types for OmniLedger."""
