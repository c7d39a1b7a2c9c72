"""
Organization (tenant) records and tenant bootstrap.
"""
