"""Persistence layer for tradeledger."""
