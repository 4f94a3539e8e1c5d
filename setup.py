#!/usr/bin/env python3
"""Setup script for bunload."""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text(encoding="utf-8") if readme_path.exists() else ""

setup(
    name="bunload",
    version="1.0.0",
    author="bunload contributors",
    description="Inspect, extract and patch the module graph of compiled standalone executables",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["bunload_py", "bunload_py.*"]),
    py_modules=["server"],
    package_data={
        "bunload_py": ["config.json", "payload.js"],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Disassemblers",
    ],
    python_requires=">=3.8",
    install_requires=[
        "flask>=2.2",
        "werkzeug>=2.2",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "mypy>=1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "bunload=bunload_py.cli:main",
        ],
    },
)
