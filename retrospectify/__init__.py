"""Retrospectify: team retrospectives with AI-written summary reports."""
