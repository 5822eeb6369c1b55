"""Proctoring utilities"""
