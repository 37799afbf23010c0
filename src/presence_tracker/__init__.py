"""Presence Tracker package.

Multi-tenant attendance tracking organized by feature modules (policies,
attendance, requests, ...) with a thin Flask controller layer over
service/repository layers.
"""
