"""
Test utilities package.

Fakes for the external ports live in tests/fakes.py. Prefer per-test
monkeypatch/fixtures over global patching.
"""
