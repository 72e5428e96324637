"""Simulator device resolution and lifecycle"""
