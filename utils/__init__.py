"""Production Cycle Client - Shared Utilities"""
