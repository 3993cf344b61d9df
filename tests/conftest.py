"""Shared pytest configuration: the app under test talks to the in-memory backend."""
import os

os.environ.setdefault('BACKEND', 'dummy')
os.environ.setdefault('LOG_LEVEL', 'DEBUG')
