"""Core domain package for callsweep.

Core contains entry parsing, the dedup ledger, report aggregation and the
collection state machine without any browser or file-specific code, keeping
the business logic portable.
"""
