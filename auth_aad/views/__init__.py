"""HTML views"""
