"""
Core business logic for media offloading.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
or any infrastructure concerns. Storage clients, option stores and the
host's asset records are reached only through protocols, so the offloading
rules can be tested in isolation.
"""
