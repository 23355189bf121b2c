"""Shared helpers for routes and services"""
