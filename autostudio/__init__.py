"""
AutoStudio - showroom compositor for dealership car photos.
"""
