"""Adaptive Assessment & Integrity Engine"""
