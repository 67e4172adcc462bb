"""Test mocks"""
