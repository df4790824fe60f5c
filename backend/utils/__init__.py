"""Utilities package for backend services"""
