"""
Business services for BoxOffice.
"""
