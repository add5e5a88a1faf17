"""
Route handlers for the VAM API, grouped by concern.
"""
