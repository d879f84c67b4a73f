"""Voxen backend"""
