"""
scramsasl Test Suite

Test organization:
- unit/: Unit tests for individual modules
- property/: Property-based tests using Hypothesis
- helpers.py: Simulated SCRAM server used to drive full exchanges
"""
