"""
WanlyConsole — setuptools build script.

Usage:
    # Development install:
    pip install -e ".[test]"

    # Run the console:
    wanly-console        (or: python3 main.py)
"""

from setuptools import setup, find_namespace_packages

APP_NAME = "wanly-console"

setup(
    name=APP_NAME,
    version="1.0.0",
    description="Operator console for a remote video-generation job queue",
    packages=find_namespace_packages(include=["wanly_console", "wanly_console.*"]),
    install_requires=[
        "requests>=2.28.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "wanly-console = wanly_console.desktop.ui_main:main",
        ],
    },
)
