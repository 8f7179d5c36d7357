"""Offline sync application for the ImmuneMe backend.

This package contains the sync engine services, the models that hold the
shared document store and its audit trails, and the API views devices
call to pull changes and push their offline edits.
"""
