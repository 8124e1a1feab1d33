"""Core AI capabilities for walkthrough generation."""
