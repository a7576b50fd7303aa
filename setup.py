"""
Setup script for tiny-theta.
"""

from setuptools import setup, find_packages

setup(
    name="tiny-theta",
    version="0.1.0",
    packages=find_packages(include=["tiny_theta", "tiny_theta.*"]),
    package_data={"tiny_theta": ["py.typed"]},
    python_requires=">=3.8",
)
