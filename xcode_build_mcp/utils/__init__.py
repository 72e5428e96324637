"""Utility modules for command execution, log storage and formatting"""
