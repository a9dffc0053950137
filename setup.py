#!/usr/bin/env python3
"""
Cache-Bench Setup Script
========================
Allows installation of the cache-bench package.

Usage:
    pip install -e .           # Development install
    pip install -e ".[test]"   # With test dependencies
    pip install .              # Regular install
"""

from setuptools import setup, find_packages

setup(
    name="cache-bench",
    version="1.0.0",
    packages=find_packages(include=["cache_bench", "cache_bench.*"]),
    python_requires=">=3.10",
    install_requires=[
        "httpx>=0.24",
        "redis>=5.0.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "cache-bench=cache_bench.cli:main",
            "cache-bench-server=cache_bench.server:main",
        ],
    },
)
