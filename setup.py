"""
Setup script for IB60 Breakout.
"""

from setuptools import setup, find_packages

setup(
    name="ib60_breakout",
    version="0.1.0",
    description="Initial Balance breakout strategy with a partial take-profit ladder",
    author="Warren",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pandas>=2.0.0",
        "numpy>=1.24.0",
        "pyyaml>=6.0.1",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "black>=23.0.0",
            "mypy>=1.6.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ib60-replay=backtester.replay_runner:main",
        ],
    },
)
