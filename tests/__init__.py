"""Production Cycle Client - Test Suite"""
