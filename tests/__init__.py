"""
Feature Alignment Test Suite

Structure:
- unit/: Unit tests for individual pipeline stages
- integration/: End-to-end alignment of synthetic image pairs
- fixtures/: Synthetic image generators shared by both
"""
