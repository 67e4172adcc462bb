"""Tests for the Azure AD integration"""
